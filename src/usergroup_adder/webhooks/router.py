"""
Webhook router for the Slack Events API.

- /slack/events - membership events (team_join, user_change)
- /api/events   - same handler, for deployments that post to the legacy path

Signature verification runs on the raw body before anything is parsed.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from usergroup_adder.config import SETTINGS_ERRORS, Settings, get_settings
from usergroup_adder.dedup import RecentlyProcessed
from usergroup_adder.dispatcher import DispatchResult, EventDispatcher
from usergroup_adder.logging import get_logger
from usergroup_adder.slack_api import WorkspaceApi
from usergroup_adder.webhooks.signatures import (
    SignatureVerificationError,
    verify_slack_signature,
)

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


def _workspace_api(request: Request, settings: Settings) -> WorkspaceApi:
    api = getattr(request.app.state, "workspace_api", None)
    if api is not None:
        return api
    return WorkspaceApi(token=settings.slack_bot_token)


def _recently_processed(request: Request, settings: Settings) -> RecentlyProcessed:
    cache = getattr(request.app.state, "recently_processed", None)
    if cache is None:
        cache = RecentlyProcessed(
            window_ms=settings.dedup_window_seconds * 1000,
            max_entries=settings.dedup_max_entries,
        )
        request.app.state.recently_processed = cache
    return cache


def _parse_payload(raw_body: bytes) -> Dict[str, Any]:
    payload = json.loads(raw_body) if raw_body else {}
    if not isinstance(payload, dict):
        raise ValueError("payload is not a JSON object")
    return payload


def _to_response(result: DispatchResult):
    if result.is_text:
        return PlainTextResponse(content=result.body, status_code=result.status_code)
    return JSONResponse(content=result.body, status_code=result.status_code)


@router.post("/slack/events")
@router.post("/api/events")
async def slack_events(
    request: Request,
    x_slack_request_timestamp: str = Header(default="", alias="X-Slack-Request-Timestamp"),
    x_slack_signature: str = Header(default="", alias="X-Slack-Signature"),
    x_slack_retry_num: str = Header(default="", alias="X-Slack-Retry-Num"),
    x_slack_retry_reason: str = Header(default="", alias="X-Slack-Retry-Reason"),
):
    """
    Handle Slack Events API webhooks.

    Returns 401 on signature failure, 500 with ``{ok: false, error}`` on a
    configuration, parsing or dispatch error and 200 otherwise.
    """
    structlog.contextvars.clear_contextvars()
    raw_body = await request.body()

    try:
        settings = get_settings()
    except SETTINGS_ERRORS as e:
        logger.error("settings_invalid", error=str(e))
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})

    try:
        verify_slack_signature(
            signing_secret=settings.slack_signing_secret,
            timestamp=x_slack_request_timestamp or None,
            signature=x_slack_signature or None,
            raw_body=raw_body,
            max_age_seconds=settings.signature_max_age_seconds,
        )
    except SignatureVerificationError as e:
        logger.warning("slack_signature_failed", reason=e.reason)
        raise HTTPException(
            status_code=401, detail=f"signature_verification_failed: {e.reason}"
        )

    try:
        payload = _parse_payload(raw_body)

        structlog.contextvars.bind_contextvars(
            correlation_id=payload.get("event_id") or uuid.uuid4().hex
        )
        event = payload.get("event")
        logger.info(
            "slack_event_received",
            payload_type=payload.get("type"),
            event_type=event.get("type") if isinstance(event, dict) else None,
            retry_num=x_slack_retry_num or None,
            retry_reason=x_slack_retry_reason or None,
        )

        dispatcher = EventDispatcher(
            api=_workspace_api(request, settings),
            settings=settings,
            recently_processed=_recently_processed(request, settings),
        )
        result = await dispatcher.dispatch(payload)
    except Exception as e:
        logger.exception("slack_event_handler_error", error=str(e))
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})

    return _to_response(result)
