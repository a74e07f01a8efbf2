"""Pydantic models for inbound Slack events and per-request results."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

# =============================================================================
# Inbound
# =============================================================================


class SlackUser(BaseModel):
    """The ``user`` object carried by team_join / user_change events."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    deleted: bool = False
    # Tri-state: None means Slack omitted the field.
    is_restricted: Optional[bool] = None


class InboundEvent(BaseModel):
    """The ``event`` object of an Events API callback."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    user: Optional[SlackUser] = None

    @classmethod
    def from_payload(cls, event: Dict[str, Any]) -> "InboundEvent":
        user = event.get("user")
        # Message-style events carry the user as a bare id string.
        if isinstance(user, str):
            user = {"id": user}
        elif not isinstance(user, dict):
            user = None
        return cls(type=str(event.get("type") or ""), user=user)

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None


# =============================================================================
# Results
# =============================================================================


class _Result(BaseModel):
    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class MembershipResult(_Result):
    """Outcome of adding the user to one usergroup."""

    usergroup: str
    ok: bool
    updated: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None


class ChannelInviteResult(_Result):
    """Outcome of inviting the user to one channel."""

    channel: str
    ok: bool
    invited: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None


class WelcomeResult(_Result):
    ok: bool
    sent: bool = False
    channel: Optional[str] = None
    error: Optional[str] = None


class WorkspaceUser(BaseModel):
    """Subset of ``users.info`` used for the liveness check."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: Optional[str] = None
    deleted: bool = False
    is_restricted: bool = False
    is_ultra_restricted: bool = False
    is_bot: bool = False
