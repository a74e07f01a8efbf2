"""Usergroup Adder - FastAPI application."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from usergroup_adder import __version__
from usergroup_adder.config import SETTINGS_ERRORS, get_settings
from usergroup_adder.dedup import RecentlyProcessed
from usergroup_adder.logging import get_logger, setup_logging
from usergroup_adder.webhooks.router import router as webhooks_router

logger = get_logger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app_: FastAPI):
        # Invalid configuration must not stop startup; requests report it.
        try:
            s = get_settings()
        except SETTINGS_ERRORS as e:
            setup_logging()
            logger.warning("settings_invalid_at_startup", error=str(e))
            s = None

        if s is None:
            app_.state.recently_processed = RecentlyProcessed()
        else:
            setup_logging(
                level=s.log_level, log_format=s.log_format, service_name=s.service_name
            )
            app_.state.recently_processed = RecentlyProcessed(
                window_ms=s.dedup_window_seconds * 1000,
                max_entries=s.dedup_max_entries,
            )
            if not s.slack_signing_secret:
                logger.warning(
                    "slack_signing_secret_missing",
                    reason="SLACK_SIGNING_SECRET not set, all events will be rejected",
                )
            logger.info(
                "usergroup_adder_starting",
                usergroups=s.usergroup_id_list,
                channel_invites=s.enable_channel_invites,
                welcome_message=s.enable_welcome_message,
                member_cleanup=s.member_cleanup.value,
            )

        # None: the router builds a client per request from SLACK_BOT_TOKEN.
        app_.state.workspace_api = None
        yield
        logger.info("usergroup_adder_stopping")

    app = FastAPI(title="Usergroup Adder", version=__version__, lifespan=lifespan)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "service": "usergroup-adder"}

    app.include_router(webhooks_router)
    return app


def main() -> None:
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
