from __future__ import annotations

__all__ = ["ResumeZapService"]


def __getattr__(name: str):
    if name == "ResumeZapService":
        from resumezap.app.orchestrator import ResumeZapService

        return ResumeZapService
    raise AttributeError(name)
