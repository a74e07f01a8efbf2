"""
Thin async wrapper over the Slack Web API calls this service makes.

Every method raises :class:`WorkspaceApiError` when Slack answers
``ok: false``. Transport errors from the underlying client propagate
unchanged; callers catch both per call.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from usergroup_adder.logging import get_logger
from usergroup_adder.models import WorkspaceUser

logger = get_logger(__name__)


class WorkspaceApiError(Exception):
    """A Slack Web API call returned ``ok: false``."""

    def __init__(self, method: str, error: str):
        self.method = method
        self.error = error
        super().__init__(f"{method} failed: {error}")


def _error_code(exc: SlackApiError) -> str:
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            code = response.get("error")
        except AttributeError:
            code = None
        if code:
            return str(code)
    return str(exc)


class WorkspaceApi:
    """Usergroup, channel and messaging operations against one workspace."""

    def __init__(self, token: str, client: Optional[AsyncWebClient] = None):
        if client is None:
            # An empty token still builds a client; Slack answers not_authed per call.
            client = AsyncWebClient(token=token or None)
        self._client = client

    async def _call(self, method: str, **kwargs: Any) -> Any:
        fn = getattr(self._client, method.replace(".", "_"))
        try:
            return await fn(**kwargs)
        except SlackApiError as e:
            raise WorkspaceApiError(method, _error_code(e)) from e

    async def get_user(self, user_id: str) -> WorkspaceUser:
        response = await self._call("users.info", user=user_id)
        return WorkspaceUser.model_validate(response.get("user") or {"id": user_id})

    async def list_group_members(self, usergroup_id: str) -> List[str]:
        response = await self._call("usergroups.users.list", usergroup=usergroup_id)
        return list(response.get("users") or [])

    async def set_group_members(
        self, usergroup_id: str, user_ids: Sequence[str]
    ) -> None:
        """Replace the usergroup's full member list."""
        await self._call(
            "usergroups.users.update",
            usergroup=usergroup_id,
            users=",".join(user_ids),
        )

    async def invite_to_channel(self, channel_id: str, user_id: str) -> None:
        await self._call("conversations.invite", channel=channel_id, users=user_id)

    async def open_direct_message(self, user_id: str) -> str:
        response = await self._call("conversations.open", users=user_id)
        channel = response.get("channel") or {}
        channel_id = channel.get("id")
        if not channel_id:
            raise WorkspaceApiError("conversations.open", "missing_channel_id")
        return channel_id

    async def post_message(self, channel_id: str, text: str) -> None:
        await self._call("chat.postMessage", channel=channel_id, text=text)
