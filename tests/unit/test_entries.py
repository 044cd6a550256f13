from __future__ import annotations

from entra_batch.models.entries import InvitationEntry, MemberCreationEntry, drop_absent


def test_drop_absent_keeps_falsy_values():
    assert drop_absent({"a": None, "b": False, "c": "", "d": 0}) == {"b": False, "c": "", "d": 0}


def test_invitation_body_without_message():
    entry = InvitationEntry(email="Guest@X.com", display_name="Guest", redirect_url="https://r")
    body = entry.to_request_body(True)
    assert body == {
        "invitedUserEmailAddress": "Guest@X.com",
        "invitedUserDisplayName": "Guest",
        "inviteRedirectUrl": "https://r",
        "sendInvitationMessage": True,
    }
    assert entry.key == "guest@x.com"


def test_invitation_body_omits_missing_redirect():
    body = InvitationEntry(email="a@x.com", display_name="A", message="hi").to_request_body(False)
    assert "inviteRedirectUrl" not in body
    assert body["invitedUserMessageInfo"] == {"customizedMessageBody": "hi"}
    assert body["sendInvitationMessage"] is False


def test_member_body_sparse_fields_absent():
    entry = MemberCreationEntry(user_principal_name="A@X.com", display_name="A", mail_nickname="A")
    body = entry.to_request_body("Secret#123456789", True)
    assert body == {
        "accountEnabled": True,
        "displayName": "A",
        "mailNickname": "A",
        "userPrincipalName": "A@X.com",
        "usageLocation": "US",
        "passwordProfile": {"forceChangePasswordNextSignIn": True, "password": "Secret#123456789"},
    }
    assert entry.key == "a@x.com"


def test_member_body_full():
    entry = MemberCreationEntry(
        user_principal_name="b@x.com",
        display_name="B",
        mail_nickname="bee",
        given_name="Bea",
        surname="Bee",
        usage_location="JP",
        job_title="Engineer",
        department="R&D",
        account_enabled=False,
    )
    body = entry.to_request_body("pw", False)
    assert body["givenName"] == "Bea"
    assert body["surname"] == "Bee"
    assert body["usageLocation"] == "JP"
    assert body["jobTitle"] == "Engineer"
    assert body["department"] == "R&D"
    assert body["accountEnabled"] is False
    assert body["passwordProfile"]["forceChangePasswordNextSignIn"] is False
