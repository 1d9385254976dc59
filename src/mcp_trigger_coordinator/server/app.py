"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the trigger coordinator.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from mcp_trigger_coordinator import __version__
from mcp_trigger_coordinator.coordinator.factory import build_coordinator
from mcp_trigger_coordinator.coordinator.records import CompletionRecord, EventRecord
from mcp_trigger_coordinator.coordinator.rule_loader import RuleSpec
from mcp_trigger_coordinator.coordinator.triggers.coordinator import TriggerCoordinator
from mcp_trigger_coordinator.coordinator.triggers.rules import ConfigurationError
from mcp_trigger_coordinator.server.config import ServerSettings
from mcp_trigger_coordinator.server.models import (
    ApiHistoryEntry,
    ApiNotification,
    RateLimitStatus,
    RuleSetRequest,
)

logger = logging.getLogger(__name__)


def create_app(
    coordinator: TriggerCoordinator | None = None,
    settings: ServerSettings | None = None,
) -> FastAPI:
    settings = settings or ServerSettings()
    coordinator = coordinator or build_coordinator(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        # Pending in-flight release timers must not outlive the server.
        coordinator.close()
        logger.info("Trigger coordinator closed")

    app = FastAPI(
        title="MCP Trigger Coordinator",
        version=__version__,
        description="REST API over the event-driven trigger coordinator.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "version": __version__, "rules": len(coordinator.rules())}

    @app.post("/api/events", response_model=list[ApiNotification])
    def submit_event(record: EventRecord) -> list[ApiNotification]:
        notifications = coordinator.submit_event(record.to_event())
        return [ApiNotification.from_notification(n) for n in notifications]

    @app.post("/api/analyses/complete")
    def complete_analysis(record: CompletionRecord) -> dict[str, str]:
        coordinator.complete_analysis(record.rule_name, record.source_id)
        return {"status": "ok"}

    @app.get("/api/rules", response_model=list[RuleSpec])
    def list_rules() -> list[RuleSpec]:
        return [RuleSpec.from_rule(rule) for rule in coordinator.rules()]

    @app.put("/api/rules", response_model=list[RuleSpec])
    def replace_rules(req: RuleSetRequest) -> list[RuleSpec]:
        try:
            coordinator.update_configuration([spec.to_rule() for spec in req.rules])
        except ConfigurationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return [RuleSpec.from_rule(rule) for rule in coordinator.rules()]

    @app.get("/api/rate-limits/{target_service}", response_model=RateLimitStatus)
    def rate_limit_status(target_service: str) -> RateLimitStatus:
        return RateLimitStatus(
            target_service=target_service,
            rate_limited=coordinator.is_rate_limited(target_service),
        )

    @app.get("/api/history/{rule_name}/{source_id}", response_model=ApiHistoryEntry)
    def history_entry(rule_name: str, source_id: str) -> ApiHistoryEntry:
        entry = coordinator.history_entry(rule_name, source_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="No trigger history for this source")
        return ApiHistoryEntry.from_entry(rule_name, source_id, entry)

    return app
