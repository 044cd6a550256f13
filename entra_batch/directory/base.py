from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

"""Directory client boundary consumed by the row processor.

The processor only depends on DirectoryClient; the Graph implementation lives in
directory.graph and tests substitute an in-memory fake.
"""

__all__ = [
    "RemoteError",
    "DirectoryUser",
    "Invitation",
    "DirectoryClient",
]


class RemoteError(Exception):
    """A directory call failed. Always row-scoped, never fatal for the batch."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class DirectoryUser:
    id: str
    display_name: str | None = None
    user_principal_name: str | None = None
    mail: str | None = None
    user_type: str | None = None  # "Member" / "Guest"

    @property
    def is_guest(self) -> bool:
        return (self.user_type or "").lower() == "guest"

    @staticmethod
    def from_graph(data: dict[str, Any]) -> DirectoryUser:
        return DirectoryUser(
            id=data["id"],
            display_name=data.get("displayName"),
            user_principal_name=data.get("userPrincipalName"),
            mail=data.get("mail"),
            user_type=data.get("userType"),
        )


@dataclass(frozen=True)
class Invitation:
    invited_user: DirectoryUser
    redeem_url: str | None = None
    status: str | None = None


class DirectoryClient(Protocol):
    def find_user(self, key: str) -> DirectoryUser | None: ...

    def create_user(self, body: dict[str, Any]) -> DirectoryUser: ...

    def invite_guest_user(
        self,
        email: str,
        display_name: str,
        redirect_url: str | None,
        message: str | None,
        send_message: bool,
    ) -> Invitation: ...

    def add_user_to_group(self, group_id: str, user_id: str) -> None: ...

    def close(self) -> None: ...
