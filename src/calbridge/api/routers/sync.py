"""Sync endpoints — registry -> calendar create and calendar -> registry update.

Provides:
- ``POST /create-event``: reservation record in, calendar event out.
- ``POST|PUT /update-alchemy``: calendar event in, registry record updated.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request

from calbridge.errors import ValidationError
from calbridge.models import CreateEventResult, UpdateRecordResult
from calbridge.sync import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Return the orchestrator installed on ``app.state`` at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise RuntimeError("SyncOrchestrator not initialized")
    return orchestrator


async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        raise ValidationError("Request body must be a JSON object")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Request body must be valid JSON") from exc


@router.post("/create-event", response_model=CreateEventResult)
async def create_event(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> CreateEventResult:
    """Create a calendar event from a registry reservation record."""
    payload = await _read_json_body(request)
    logger.debug("Received registry record: %s", payload)
    return await orchestrator.create_from_record(payload)


@router.api_route("/update-alchemy", methods=["POST", "PUT"], response_model=UpdateRecordResult)
async def update_alchemy(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> UpdateRecordResult:
    """Propagate a calendar event's times back onto its registry record."""
    payload = await _read_json_body(request)
    logger.debug("Received calendar event: %s", payload)
    return await orchestrator.update_from_event(payload)
