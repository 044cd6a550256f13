from __future__ import annotations

import logging
import time
from typing import Any

import requests
from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import AzureCliCredential, ClientSecretCredential, DeviceCodeCredential

from ..config.loader import AuthConfig, ConfigError
from ..models.entries import InvitationEntry
from .base import DirectoryUser, Invitation, RemoteError

"""Microsoft Graph v1.0 implementation of DirectoryClient.

Authentication is delegated to azure-identity:
- device_code   : DeviceCodeCredential (interactive, operator signs in once)
- client_secret : ClientSecretCredential (app registration, AZURE_CLIENT_SECRET)
- azure_cli     : AzureCliCredential (reuses `az login`)

Tokens are cached on the client and refreshed TOKEN_REFRESH_BUFFER_SECS before
expiry. No retry/backoff: a failed call raises RemoteError and the batch runner
moves on to the next row.
"""

__all__ = [
    "GRAPH_API",
    "GRAPH_SCOPE",
    "build_credential",
    "GraphDirectoryClient",
]

logger = logging.getLogger(__name__)

GRAPH_API = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
TOKEN_REFRESH_BUFFER_SECS = 300
REQUEST_TIMEOUT_SECS = 30

# Azure CLI の公開クライアント ID (device code のデフォルト)
AZURE_CLI_CLIENT_ID = "04b07795-8ddb-461a-bbee-02f9e1bf7b46"

USER_SELECT = "id,displayName,userPrincipalName,mail,userType"


def build_credential(auth: AuthConfig, tenant_id: str) -> TokenCredential:
    if auth.method == "device_code":
        return DeviceCodeCredential(
            tenant_id=tenant_id,
            client_id=auth.client_id or AZURE_CLI_CLIENT_ID,
        )
    if auth.method == "client_secret":
        if not auth.client_id or not auth.client_secret:
            raise ConfigError(
                "client_secret auth requires AZURE_CLIENT_ID and AZURE_CLIENT_SECRET"
            )
        return ClientSecretCredential(
            tenant_id=tenant_id,
            client_id=auth.client_id,
            client_secret=auth.client_secret,
        )
    if auth.method == "azure_cli":
        return AzureCliCredential(tenant_id=tenant_id)
    raise ConfigError(f"unsupported auth method: {auth.method}")


def _odata_quote(value: str) -> str:
    return value.replace("'", "''")


def _error_message(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        return f"HTTP {resp.status_code}: {resp.text[:200]}"
    err = payload.get("error") or {}
    code = err.get("code") or f"HTTP {resp.status_code}"
    return f"{code}: {err.get('message') or resp.reason}"


def _user_from(data: dict[str, Any], what: str) -> DirectoryUser:
    if not data.get("id"):
        raise RemoteError(f"{what} response missing id")
    return DirectoryUser.from_graph(data)


class GraphDirectoryClient:
    """DirectoryClient over Graph REST with a single requests.Session."""

    def __init__(
        self,
        credential: TokenCredential,
        *,
        base_url: str = GRAPH_API,
        session: requests.Session | None = None,
    ) -> None:
        self.credential = credential
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    # -- token -------------------------------------------------------------

    def _get_token(self) -> str:
        now = time.time()
        if self._access_token and now < self._token_expires_at:
            return self._access_token
        try:
            token = self.credential.get_token(GRAPH_SCOPE)
        except ClientAuthenticationError as e:
            raise RemoteError(f"authentication failed: {e.message}") from e
        self._access_token = token.token
        self._token_expires_at = token.expires_on - TOKEN_REFRESH_BUFFER_SECS
        return self._access_token

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self._get_token()}",
            "Content-Type": "application/json",
        }
        logger.debug(f"graph {method} {path}")
        try:
            resp = self.session.request(
                method, url, headers=headers, timeout=REQUEST_TIMEOUT_SECS, **kwargs
            )
        except requests.RequestException as e:
            raise RemoteError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            raise RemoteError(_error_message(resp), status_code=resp.status_code)
        return resp

    def _json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """_request + JSON object body; an unreadable 2xx body is a RemoteError too."""
        resp = self._request(method, path, **kwargs)
        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteError(
                f"{method} {path}: response is not JSON", status_code=resp.status_code
            ) from e
        if not isinstance(data, dict):
            raise RemoteError(
                f"{method} {path}: unexpected response body", status_code=resp.status_code
            )
        return data

    # -- DirectoryClient ---------------------------------------------------

    def find_user(self, key: str) -> DirectoryUser | None:
        quoted = _odata_quote(key)
        params = {
            "$filter": f"userPrincipalName eq '{quoted}' or mail eq '{quoted}'",
            "$select": USER_SELECT,
        }
        values = self._json("GET", "/users", params=params).get("value") or []
        if not values:
            return None
        # ゲストを優先 (招待フローの存在チェック用)
        values.sort(key=lambda v: (v.get("userType") or "").lower() != "guest")
        return _user_from(values[0], "user lookup")

    def create_user(self, body: dict[str, Any]) -> DirectoryUser:
        return _user_from(self._json("POST", "/users", json=body), "create user")

    def invite_guest_user(
        self,
        email: str,
        display_name: str,
        redirect_url: str | None,
        message: str | None,
        send_message: bool,
    ) -> Invitation:
        entry = InvitationEntry(
            email=email, display_name=display_name, message=message, redirect_url=redirect_url
        )
        data = self._json("POST", "/invitations", json=entry.to_request_body(send_message))
        invited = data.get("invitedUser") or {}
        if not isinstance(invited, dict) or not invited.get("id"):
            raise RemoteError("invitation response missing invitedUser.id")
        user = DirectoryUser.from_graph(
            {"displayName": display_name, "mail": email, "userType": "Guest", **invited}
        )
        return Invitation(
            invited_user=user,
            redeem_url=data.get("inviteRedeemUrl"),
            status=data.get("status"),
        )

    def add_user_to_group(self, group_id: str, user_id: str) -> None:
        body = {"@odata.id": f"{self.base_url}/directoryObjects/{user_id}"}
        try:
            self._request("POST", f"/groups/{group_id}/members/$ref", json=body)
        except RemoteError as e:
            # 既にメンバーの場合は成功扱い
            if e.status_code == 400 and "already exist" in e.message:
                logger.debug(f"user {user_id} already member of group {group_id}")
                return
            raise

    def close(self) -> None:
        self.session.close()
        close = getattr(self.credential, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> GraphDirectoryClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
