from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from resumezap.app.api import create_app
from resumezap.app.connection_manager import ConnectionManager
from resumezap.app.delivery import DeliveryDispatcher
from resumezap.app.generation import SummaryGenerator
from resumezap.app.group_sync import GroupSync
from resumezap.app.ingest.fetcher import MessageFetcher
from resumezap.app.ingest.windows import WindowSelector
from resumezap.app.scheduler_jobs import ScheduledSummaryRunner
from resumezap.app.summarizer import Summarizer
from resumezap.clients.ai_client import AiGatewayClient
from resumezap.clients.evolution_client import EvolutionClient
from resumezap.core.config import Settings
from resumezap.storage.database import Database


LOGGER = logging.getLogger(__name__)


class ResumeZapService:
    def __init__(self, settings: Settings, db: Database | None = None):
        self.settings = settings
        self.db = db or Database(settings.db_path)
        self.evolution = EvolutionClient(
            settings.evolution_api_url,
            settings.evolution_api_key,
            request_timeout_seconds=settings.http_timeout_seconds,
        )
        self.ai = AiGatewayClient(
            settings.ai_api_url,
            settings.ai_api_key,
            request_timeout_seconds=settings.http_timeout_seconds,
        )
        self.connections = ConnectionManager(
            self.db,
            self.evolution,
            qr_ttl_seconds=settings.qr_ttl_seconds,
            sweep_grace_seconds=settings.qr_sweep_grace_seconds,
            connect_attempts=settings.temporary_connect_attempts,
            connect_interval_seconds=settings.temporary_connect_interval_seconds,
        )
        self.summarizer = Summarizer(
            self.ai,
            standard_model=settings.ai_model_standard,
            advanced_model=settings.ai_model_advanced,
            language=settings.summary_language,
        )
        self.generator = SummaryGenerator(
            self.db,
            MessageFetcher(self.evolution, settings.fetch_message_limit, settings.fetch_global_limit),
            WindowSelector(settings.schedule_utc_offset_hours),
            self.summarizer,
            utc_offset_hours=settings.schedule_utc_offset_hours,
        )
        self.dispatcher = DeliveryDispatcher(self.db, self.evolution, settings.schedule_utc_offset_hours)
        self.group_sync = GroupSync(self.db, self.evolution)
        self.runner = ScheduledSummaryRunner(
            self.db,
            self.connections,
            self.generator,
            self.dispatcher,
            utc_offset_hours=settings.schedule_utc_offset_hours,
        )
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.app = create_app(self, lifespan=self._lifespan)

    def _register_jobs(self) -> None:
        # Every hour on the hour; the runner decides which users are due.
        self.scheduler.add_job(self.runner.run_hourly, "cron", minute=0, id="scheduled_summaries", replace_existing=True)

    @asynccontextmanager
    async def _lifespan(self, _app: FastAPI) -> AsyncIterator[None]:
        if self.settings.scheduler_enabled:
            self._register_jobs()
            self.scheduler.start()
            LOGGER.info("Hourly summary job scheduled (UTC%+d)", self.settings.schedule_utc_offset_hours)
        try:
            yield
        finally:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.db.close()

    def run(self) -> None:
        logging.basicConfig(
            level=getattr(logging, self.settings.log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("apscheduler").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        LOGGER.info("Starting Resume Zap API on %s:%s", self.settings.api_host, self.settings.api_port)
        uvicorn.run(self.app, host=self.settings.api_host, port=self.settings.api_port, log_config=None)
