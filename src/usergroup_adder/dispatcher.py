"""
Event dispatcher for membership events.

Flow for a verified, parsed payload:
1. url_verification handshake -> echo the challenge
2. No ``event`` -> "No event"
3. Classify (team_join, or user_change for a reactivated full member)
4. Suppress duplicates inside the dedup window
5. Resolve configured usergroups
6. Optional liveness check (skip deleted users)
7. Add to each usergroup, sequentially
8. Optional channel invites and welcome message, only if a group changed
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from usergroup_adder.config import Settings
from usergroup_adder.dedup import RecentlyProcessed
from usergroup_adder.logging import get_logger
from usergroup_adder.membership import MembershipUpdater, classify_event
from usergroup_adder.models import InboundEvent
from usergroup_adder.slack_api import WorkspaceApi

logger = get_logger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    """What the route should send back: plain text or a JSON object."""

    body: Union[str, Dict[str, Any]]
    status_code: int = 200

    @property
    def is_text(self) -> bool:
        return isinstance(self.body, str)


def handshake_challenge(payload: Dict[str, Any]) -> Optional[str]:
    challenge = payload.get("challenge")
    if payload.get("type") == "url_verification" and challenge:
        return str(challenge)
    return None


class EventDispatcher:
    """Classifies one payload and applies its side effects."""

    def __init__(
        self,
        api: WorkspaceApi,
        settings: Settings,
        recently_processed: RecentlyProcessed,
    ):
        self.api = api
        self.settings = settings
        self.recently_processed = recently_processed
        self.updater = MembershipUpdater(api, settings)

    async def dispatch(self, payload: Dict[str, Any]) -> DispatchResult:
        challenge = handshake_challenge(payload)
        if challenge is not None:
            logger.info("url_verification_challenge")
            return DispatchResult(challenge)

        raw_event = payload.get("event")
        if not isinstance(raw_event, dict):
            return DispatchResult("No event")

        event = InboundEvent.from_payload(raw_event)
        triggered_by = classify_event(event)
        user_id = event.user_id
        if not triggered_by or not user_id:
            logger.info("event_skipped", event_type=event.type, user_id=user_id)
            return DispatchResult("Skipped")

        elapsed_ms = self.recently_processed.check_and_mark(user_id)
        if elapsed_ms is not None:
            logger.info(
                "event_recently_processed",
                user_id=user_id,
                triggered_by=triggered_by,
                elapsed_ms=elapsed_ms,
            )
            return DispatchResult(
                {
                    "ok": True,
                    "userId": user_id,
                    "skipped": True,
                    "reason": "recently_processed",
                }
            )

        usergroup_ids = self.settings.usergroup_id_list
        logger.info(
            "event_processing",
            user_id=user_id,
            triggered_by=triggered_by,
            token_type=self.settings.token_type,
            usergroups=usergroup_ids,
        )

        if not usergroup_ids:
            logger.warning("no_usergroups_configured", user_id=user_id)
            return DispatchResult(
                {"ok": True, "userId": user_id, "warning": "No usergroups configured"}
            )

        if self.settings.check_user_active and await self._is_deleted(user_id):
            return DispatchResult(
                {"ok": True, "userId": user_id, "warning": "User is deleted"}
            )

        ug_results = await self.updater.add_to_usergroups(user_id, usergroup_ids)
        body: Dict[str, Any] = {
            "ok": True,
            "userId": user_id,
            "processedEvent": triggered_by,
            "ugResults": [r.to_dict() for r in ug_results],
        }

        joined = [r.usergroup for r in ug_results if r.updated]
        if joined:
            if self.settings.enable_channel_invites and self.settings.channel_id_list:
                channel_results = await self.updater.invite_to_channels(
                    user_id, self.settings.channel_id_list
                )
                body["channelResults"] = [r.to_dict() for r in channel_results]
            if self.settings.enable_welcome_message:
                welcome = await self.updater.send_welcome(user_id, joined)
                body["welcome"] = welcome.to_dict()

        logger.info(
            "event_processed",
            user_id=user_id,
            triggered_by=triggered_by,
            joined=joined,
            failed=[r.usergroup for r in ug_results if not r.ok],
        )
        return DispatchResult(body)

    async def _is_deleted(self, user_id: str) -> bool:
        """Liveness check. Lookup failures are logged and treated as live."""
        try:
            user = await self.api.get_user(user_id)
        except Exception as e:
            logger.error("user_info_failed", user_id=user_id, error=str(e))
            return False

        logger.info(
            "user_info",
            user_id=user_id,
            name=user.name,
            deleted=user.deleted,
            is_restricted=user.is_restricted,
            is_ultra_restricted=user.is_ultra_restricted,
            is_bot=user.is_bot,
        )
        if user.deleted:
            logger.warning("user_deleted_skipping", user_id=user_id)
        return user.deleted
