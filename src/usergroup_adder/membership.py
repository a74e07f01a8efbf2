"""
Usergroup membership, channel invites and welcome messages.

Handlers for:
- classify_event: which membership events are actionable
- MembershipUpdater.add_to_usergroups: idempotent fetch-then-replace per group
- MembershipUpdater.invite_to_channels: optional channel invites
- MembershipUpdater.send_welcome: optional one-time direct message

Every outbound call is caught individually; a failure becomes a structured
result entry and never stops the remaining groups or channels.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Sequence

from usergroup_adder.config import MemberCleanup, Settings, WelcomeLanguage
from usergroup_adder.logging import get_logger
from usergroup_adder.models import (
    ChannelInviteResult,
    InboundEvent,
    MembershipResult,
    WelcomeResult,
)
from usergroup_adder.slack_api import WorkspaceApi, WorkspaceApiError

logger = get_logger(__name__)

TEAM_JOIN = "team_join"
USER_REACTIVATED = "user_change (reactivated)"

# Human user ids: U (classic) or W (Enterprise Grid), upper-case alphanumerics.
HUMAN_USER_ID_PATTERN = re.compile(r"^[UW][A-Z0-9]{8,}$")

WELCOME_TEMPLATES: Dict[WelcomeLanguage, str] = {
    WelcomeLanguage.EN: (
        "Welcome, <@{user}>! :wave:\n"
        "You have been added to these groups:\n{groups}"
    ),
    WelcomeLanguage.NO: (
        "Velkommen, <@{user}>! :wave:\n"
        "Du har blitt lagt til i disse gruppene:\n{groups}"
    ),
}


def classify_event(event: InboundEvent) -> Optional[str]:
    """
    Return the trigger label for an actionable event, or None.

    team_join always qualifies. user_change qualifies only for a live user
    whose ``is_restricted`` is explicitly False; a missing flag does not
    count.
    """
    if event.type == "team_join":
        return TEAM_JOIN
    if event.type == "user_change" and event.user is not None:
        if not event.user.deleted and event.user.is_restricted is False:
            return USER_REACTIVATED
    return None


def clean_members(
    members: Iterable[Optional[str]],
    policy: MemberCleanup,
    bot_user_id: str = "",
) -> List[str]:
    """Filter an existing member list according to the cleanup policy."""
    members = list(members)
    if policy == MemberCleanup.NONE:
        return [m for m in members if m]

    cleaned = [m for m in members if m and m != bot_user_id]
    if policy == MemberCleanup.NON_HUMAN:
        cleaned = [m for m in cleaned if HUMAN_USER_ID_PATTERN.match(m)]
    return cleaned


def with_member(members: Sequence[str], user_id: str) -> List[str]:
    """Append ``user_id`` and drop duplicates, keeping first-seen order."""
    return list(dict.fromkeys([*members, user_id]))


def _error_text(exc: Exception) -> str:
    if isinstance(exc, WorkspaceApiError):
        return exc.error
    return str(exc) or exc.__class__.__name__


def render_welcome(
    user_id: str,
    joined_usergroups: Sequence[str],
    *,
    language: WelcomeLanguage = WelcomeLanguage.EN,
    template: str = "",
    descriptions: Optional[Dict[str, str]] = None,
) -> str:
    """Render the welcome text. Templates may use ``{user}`` and ``{groups}``."""
    descriptions = descriptions or {}
    lines = []
    for ug in joined_usergroups:
        description = descriptions.get(ug)
        mention = f"<!subteam^{ug}>"
        lines.append(f"• {mention}: {description}" if description else f"• {mention}")
    body = template or WELCOME_TEMPLATES[language]
    return body.format(user=user_id, groups="\n".join(lines))


class MembershipUpdater:
    """Applies the membership side effects for one user."""

    def __init__(self, api: WorkspaceApi, settings: Settings):
        self.api = api
        self.settings = settings

    async def add_to_usergroups(
        self, user_id: str, usergroup_ids: Sequence[str]
    ) -> List[MembershipResult]:
        """Add ``user_id`` to each group in order. Never raises."""
        results: List[MembershipResult] = []
        for ug in usergroup_ids:
            results.append(await self._add_to_usergroup(user_id, ug))
        return results

    async def _add_to_usergroup(self, user_id: str, ug: str) -> MembershipResult:
        try:
            current = await self.api.list_group_members(ug)

            if user_id in current:
                logger.info("usergroup_already_member", user_id=user_id, usergroup=ug)
                return MembershipResult(
                    usergroup=ug, ok=True, updated=False, reason="already a member"
                )

            cleaned = clean_members(
                current, self.settings.member_cleanup, self.settings.bot_user_id
            )
            dropped = len(current) - len(cleaned)
            if dropped:
                logger.info(
                    "usergroup_members_cleaned",
                    usergroup=ug,
                    dropped=dropped,
                    policy=self.settings.member_cleanup.value,
                )

            await self.api.set_group_members(ug, with_member(cleaned, user_id))
            logger.info("usergroup_updated", user_id=user_id, usergroup=ug)
            return MembershipResult(usergroup=ug, ok=True, updated=True)

        except Exception as e:
            logger.error(
                "usergroup_update_failed",
                user_id=user_id,
                usergroup=ug,
                error=_error_text(e),
            )
            return MembershipResult(
                usergroup=ug, ok=False, updated=False, error=_error_text(e)
            )

    async def invite_to_channels(
        self, user_id: str, channel_ids: Sequence[str]
    ) -> List[ChannelInviteResult]:
        results: List[ChannelInviteResult] = []
        for ch in channel_ids:
            try:
                await self.api.invite_to_channel(ch, user_id)
                logger.info("channel_invited", user_id=user_id, channel=ch)
                results.append(ChannelInviteResult(channel=ch, ok=True, invited=True))
            except WorkspaceApiError as e:
                if e.error == "already_in_channel":
                    results.append(
                        ChannelInviteResult(
                            channel=ch, ok=True, invited=False, reason="already_in_channel"
                        )
                    )
                    continue
                logger.warning(
                    "channel_invite_failed", user_id=user_id, channel=ch, error=e.error
                )
                results.append(ChannelInviteResult(channel=ch, ok=False, error=e.error))
            except Exception as e:
                logger.warning(
                    "channel_invite_failed",
                    user_id=user_id,
                    channel=ch,
                    error=_error_text(e),
                )
                results.append(
                    ChannelInviteResult(channel=ch, ok=False, error=_error_text(e))
                )
        return results

    async def send_welcome(
        self, user_id: str, joined_usergroups: Sequence[str]
    ) -> WelcomeResult:
        try:
            text = render_welcome(
                user_id,
                joined_usergroups,
                language=self.settings.welcome_language,
                template=self.settings.welcome_message_template,
                descriptions=self.settings.usergroup_descriptions,
            )
            channel_id = await self.api.open_direct_message(user_id)
            await self.api.post_message(channel_id, text)
        except Exception as e:
            logger.warning("welcome_message_failed", user_id=user_id, error=_error_text(e))
            return WelcomeResult(ok=False, sent=False, error=_error_text(e))

        logger.info("welcome_message_sent", user_id=user_id, channel=channel_id)
        return WelcomeResult(ok=True, sent=True, channel=channel_id)
