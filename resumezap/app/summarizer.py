from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from resumezap.app.ingest.windows import WindowSelection
from resumezap.app.prompts import (
    activity_only_clause,
    enterprise_system_prompt,
    summary_system_prompt,
    summary_user_prompt,
)
from resumezap.clients.ai_client import AiGatewayClient
from resumezap.core.errors import AIGenerationError


LOGGER = logging.getLogger(__name__)

ADVANCED_PLANS = {"pro", "premium", "enterprise"}
ENTERPRISE_PLAN = "enterprise"


@dataclass(frozen=True)
class SummaryOptions:
    tone: str = "professional"
    size: str = "medium"
    thematic_focus: str = ""
    include_sentiment: bool = False
    enterprise_detail_level: str = "full"

    @classmethod
    def from_preferences(cls, row: Mapping[str, Any] | None) -> "SummaryOptions":
        if row is None:
            return cls()
        data = dict(row)
        return cls(
            tone=str(data.get("tone") or "professional"),
            size=str(data.get("size") or "medium"),
            thematic_focus=str(data.get("thematic_focus") or ""),
            include_sentiment=bool(data.get("include_sentiment_analysis")),
            enterprise_detail_level=str(data.get("enterprise_detail_level") or "full"),
        )


class Summarizer:
    def __init__(self, ai_client: AiGatewayClient, standard_model: str, advanced_model: str, language: str):
        self.ai_client = ai_client
        self.standard_model = standard_model
        self.advanced_model = advanced_model
        self.language = language

    def model_for_plan(self, plan: str | None) -> str:
        if (plan or "").strip().lower() in ADVANCED_PLANS:
            return self.advanced_model
        return self.standard_model

    def system_prompt(self, plan: str | None, options: SummaryOptions, activity_only: bool = False) -> str:
        if (plan or "").strip().lower() == ENTERPRISE_PLAN:
            prompt = enterprise_system_prompt(
                self.language,
                detail_level=options.enterprise_detail_level,
                thematic_focus=options.thematic_focus,
            )
        else:
            prompt = summary_system_prompt(
                self.language,
                tone=options.tone,
                size=options.size,
                thematic_focus=options.thematic_focus,
                include_sentiment=options.include_sentiment,
            )
        if activity_only:
            prompt += " " + activity_only_clause()
        return prompt

    def summarize(
        self,
        group_name: str,
        selection: WindowSelection,
        plan: str | None,
        options: SummaryOptions | None = None,
    ) -> str:
        if not selection.lines:
            raise AIGenerationError(f"Nothing to summarize for {group_name}")
        options = options or SummaryOptions()
        model = self.model_for_plan(plan)
        LOGGER.info(
            "Summarizing %s lines for %s with %s (window=%s, activity_only=%s)",
            len(selection.lines),
            group_name,
            model,
            selection.window,
            selection.activity_only,
        )
        return self.ai_client.chat(
            model,
            self.system_prompt(plan, options, activity_only=selection.activity_only),
            summary_user_prompt(group_name, selection.lines, selection.window),
        )
