from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""Normalized entry models (one per pipeline).

Entries are produced by services.normalize from a RawRow and carry every
default already resolved. Optional fields left as None are omitted from the
outbound Graph request body instead of being sent as null.
"""

__all__ = [
    "InvitationEntry",
    "MemberCreationEntry",
    "drop_absent",
]


def drop_absent(body: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of body without keys whose value is None."""
    return {k: v for k, v in body.items() if v is not None}


@dataclass(frozen=True)
class InvitationEntry:
    """Guest invitation target."""
    email: str
    display_name: str
    name: str | None = None
    message: str | None = None
    redirect_url: str | None = None
    group_id: str | None = None  # 行単位のグループ上書き

    @property
    def key(self) -> str:
        return self.email.lower()

    def to_request_body(self, send_message: bool) -> dict[str, Any]:
        """Build the POST /invitations body."""
        body: dict[str, Any] = {
            "invitedUserEmailAddress": self.email,
            "invitedUserDisplayName": self.display_name,
            "inviteRedirectUrl": self.redirect_url,
            "sendInvitationMessage": send_message,
        }
        if self.message:
            body["invitedUserMessageInfo"] = {"customizedMessageBody": self.message}
        return drop_absent(body)


@dataclass(frozen=True)
class MemberCreationEntry:
    """Member account to create.

    force_change_password is tri-state (None when the column is blank);
    it is resolved by services.processor once the password source is known.
    """
    user_principal_name: str
    display_name: str
    mail_nickname: str
    password: str | None = None
    given_name: str | None = None
    surname: str | None = None
    usage_location: str = "US"
    job_title: str | None = None
    department: str | None = None
    force_change_password: bool | None = None
    account_enabled: bool = True
    group_id: str | None = None

    @property
    def key(self) -> str:
        return self.user_principal_name.lower()

    def to_request_body(self, password: str, force_change_password: bool) -> dict[str, Any]:
        """Build the POST /users body for the resolved credential."""
        body: dict[str, Any] = {
            "accountEnabled": self.account_enabled,
            "displayName": self.display_name,
            "mailNickname": self.mail_nickname,
            "userPrincipalName": self.user_principal_name,
            "givenName": self.given_name,
            "surname": self.surname,
            "usageLocation": self.usage_location,
            "jobTitle": self.job_title,
            "department": self.department,
            "passwordProfile": {
                "forceChangePasswordNextSignIn": force_change_password,
                "password": password,
            },
        }
        return drop_absent(body)
