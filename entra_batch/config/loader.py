from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader for the provisioning CLI.

Responsibilities:
- Load YAML config (config/provision.yml by default)
- Validate against the bundled JSON schema (provision_schema.json)
- Apply defaults, then environment overrides (.env is loaded by the CLI)

Resolution order (later wins): built-in defaults -> YAML -> environment -> CLI flags.
CLI flags are applied by the caller via apply_overrides().
"""

__all__ = [
    "ConfigError",
    "AuthConfig",
    "ProvisionConfig",
    "DEFAULT_TENANT_ID",
    "DEFAULT_REDIRECT_URL",
    "load_config",
    "apply_overrides",
]

SCHEMA_PATH = Path(__file__).with_name("provision_schema.json")

DEFAULT_TENANT_ID = "your-tenant.onmicrosoft.com"
DEFAULT_REDIRECT_URL = "https://myapplications.microsoft.com"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class AuthConfig:
    method: str = "device_code"
    client_id: str | None = None
    client_secret: str | None = None  # 環境変数 AZURE_CLIENT_SECRET のみから取得


@dataclass(frozen=True)
class ProvisionConfig:
    csv_path: str | None = None
    tenant_id: str = DEFAULT_TENANT_ID
    log_path: str | None = None
    add_to_group_id: str | None = None
    skip_existing: bool = False
    dry_run: bool = False
    throttle_delay_seconds: int = 0
    # invite pipeline
    send_invitation_message: bool = True
    custom_message: str | None = None
    redirect_url: str = DEFAULT_REDIRECT_URL
    # create pipeline
    domain_suffix: str | None = None
    auth: AuthConfig = field(default_factory=AuthConfig)

    @property
    def tenant_is_placeholder(self) -> bool:
        return self.tenant_id == DEFAULT_TENANT_ID


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing/invalid, or data violates the schema
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _from_mapping(data: dict[str, Any]) -> ProvisionConfig:
    invite = data.get("invite") or {}
    create = data.get("create") or {}
    auth = data.get("auth") or {}
    defaults = ProvisionConfig()
    return ProvisionConfig(
        csv_path=data.get("csv_path"),
        tenant_id=data.get("tenant_id", defaults.tenant_id),
        log_path=data.get("log_path"),
        add_to_group_id=data.get("add_to_group_id"),
        skip_existing=data.get("skip_existing", defaults.skip_existing),
        dry_run=data.get("dry_run", defaults.dry_run),
        throttle_delay_seconds=data.get("throttle_delay_seconds", defaults.throttle_delay_seconds),
        send_invitation_message=invite.get("send_invitation_message", defaults.send_invitation_message),
        custom_message=invite.get("custom_message"),
        redirect_url=invite.get("redirect_url", defaults.redirect_url),
        domain_suffix=create.get("domain_suffix"),
        auth=AuthConfig(
            method=auth.get("method", defaults.auth.method),
            client_id=auth.get("client_id"),
        ),
    )


def _apply_env(cfg: ProvisionConfig) -> ProvisionConfig:
    tenant = os.getenv("AZURE_TENANT_ID") or cfg.tenant_id
    group = os.getenv("ENTRA_GROUP_ID") or cfg.add_to_group_id
    auth = replace(
        cfg.auth,
        client_id=os.getenv("AZURE_CLIENT_ID") or cfg.auth.client_id,
        client_secret=os.getenv("AZURE_CLIENT_SECRET") or cfg.auth.client_secret,
    )
    return replace(cfg, tenant_id=tenant, add_to_group_id=group, auth=auth)


def load_config(path: Path, required: bool = True) -> ProvisionConfig:
    """Load, validate and resolve the provisioning config.

    When required is False a missing file yields the defaults (plus environment
    overrides) so the CLI can run from flags alone.
    """
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        return _apply_env(ProvisionConfig())
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)
    return _apply_env(_from_mapping(data))


def apply_overrides(cfg: ProvisionConfig, **overrides: Any) -> ProvisionConfig:
    """Return cfg with every non-None override applied (CLI flags)."""
    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return cfg
    unknown = set(changes) - set(ProvisionConfig.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"unknown config overrides: {sorted(unknown)}")
    throttle = changes.get("throttle_delay_seconds")
    if throttle is not None and throttle < 0:
        raise ConfigError("throttle_delay_seconds must be >= 0")
    return replace(cfg, **changes)
