import sys
from pathlib import Path

# Ensure `src/` is importable in tests without installing the package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from typing import Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from usergroup_adder.models import WorkspaceUser  # noqa: E402
from usergroup_adder.slack_api import WorkspaceApiError  # noqa: E402


class FakeWorkspaceApi:
    """In-memory stand-in for WorkspaceApi that records every call."""

    def __init__(self, members: Optional[Dict[str, List[str]]] = None):
        self.members: Dict[str, List[str]] = {k: list(v) for k, v in (members or {}).items()}
        self.users: Dict[str, WorkspaceUser] = {}
        self.calls: List[tuple] = []
        self.list_errors: Dict[str, Exception] = {}
        self.update_errors: Dict[str, Exception] = {}
        self.invite_errors: Dict[str, Exception] = {}
        self.user_info_error: Optional[Exception] = None
        self.open_dm_error: Optional[Exception] = None
        self.messages: List[tuple] = []

    async def get_user(self, user_id: str) -> WorkspaceUser:
        self.calls.append(("users.info", user_id))
        if self.user_info_error is not None:
            raise self.user_info_error
        return self.users.get(user_id, WorkspaceUser(id=user_id))

    async def list_group_members(self, usergroup_id: str) -> List[str]:
        self.calls.append(("usergroups.users.list", usergroup_id))
        if usergroup_id in self.list_errors:
            raise self.list_errors[usergroup_id]
        if usergroup_id not in self.members:
            raise WorkspaceApiError("usergroups.users.list", "no_such_subteam")
        return list(self.members[usergroup_id])

    async def set_group_members(self, usergroup_id: str, user_ids) -> None:
        self.calls.append(("usergroups.users.update", usergroup_id, list(user_ids)))
        if usergroup_id in self.update_errors:
            raise self.update_errors[usergroup_id]
        self.members[usergroup_id] = list(user_ids)

    async def invite_to_channel(self, channel_id: str, user_id: str) -> None:
        self.calls.append(("conversations.invite", channel_id, user_id))
        if channel_id in self.invite_errors:
            raise self.invite_errors[channel_id]

    async def open_direct_message(self, user_id: str) -> str:
        self.calls.append(("conversations.open", user_id))
        if self.open_dm_error is not None:
            raise self.open_dm_error
        return f"D-{user_id}"

    async def post_message(self, channel_id: str, text: str) -> None:
        self.calls.append(("chat.postMessage", channel_id))
        self.messages.append((channel_id, text))

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture()
def fake_api() -> FakeWorkspaceApi:
    return FakeWorkspaceApi(members={"G1": ["U1", "U2"], "G2": ["U2", "U3"]})
