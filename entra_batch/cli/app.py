from __future__ import annotations

import argparse
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, ProvisionConfig, apply_overrides, load_config
from ..csvfile.reader import InputError
from ..directory.base import DirectoryClient
from ..directory.graph import GraphDirectoryClient, build_credential
from ..logging.init import log_summary, set_debug, setup_logging
from ..services.runner import load_input, run_batch
from ..services.summary import render_summary_fields

"""CLI entrypoint.

Flow:
- Load .env (override) then config/provision.yml (or --config)
- Apply CLI flag overrides
- Open one directory session for the whole run (closed on every exit path)
- Load the CSV (fatal on InputError), run the batch, print SUMMARY

Exit codes: 0 = no row ended in Error, 2 = at least one Error row, 1 = fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/provision.yml")


def _build_client(cfg: ProvisionConfig) -> DirectoryClient:
    credential = build_credential(cfg.auth, cfg.tenant_id)
    return GraphDirectoryClient(credential)


@contextmanager
def directory_session(cfg: ProvisionConfig) -> Iterator[DirectoryClient]:
    """Acquire the directory client once and always release it."""
    client = _build_client(cfg)
    try:
        yield client
    finally:
        client.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; .env values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--csv", dest="csv_path", help="Input CSV path")
    common.add_argument("--tenant-id", dest="tenant_id", help="Directory (tenant) id or domain")
    common.add_argument("--log-path", dest="log_path", help="Result log CSV path (default: timestamped under ./logs)")
    common.add_argument("--group-id", dest="add_to_group_id", help="Group to add every user to (row GroupId overrides)")
    common.add_argument("--skip-existing", dest="skip_existing", action=argparse.BooleanOptionalAction, default=None,
                        help="Look users up first and skip the ones that already exist")
    common.add_argument("--dry-run", dest="dry_run", action=argparse.BooleanOptionalAction, default=None,
                        help="Report intended actions without creating, inviting or adding")
    common.add_argument("--throttle", dest="throttle_delay_seconds", type=int,
                        help="Seconds to wait between rows")
    common.add_argument("--auth", dest="auth_method", choices=["device_code", "client_secret", "azure_cli"],
                        help="Credential type used for Microsoft Graph")

    p = argparse.ArgumentParser(description="Entra External batch user provisioning (CSV -> Microsoft Graph)")
    p.add_argument("--config", type=Path, help=f"YAML config (default: {DEFAULT_CONFIG_PATH} when present)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="pipeline", required=True)

    inv = sub.add_parser("invite", parents=[common], help="Invite guest users")
    inv.add_argument("--no-send-message", dest="send_invitation_message", action="store_false", default=None,
                     help="Create the invitation without sending the email")
    inv.add_argument("--message", dest="custom_message", help="Custom invitation message body")
    inv.add_argument("--redirect-url", dest="redirect_url", help="Redirect URL after redemption")

    cr = sub.add_parser("create", parents=[common], help="Create member users")
    cr.add_argument("--domain-suffix", dest="domain_suffix",
                    help="Domain appended to UserPrincipalName values without '@'")
    return p.parse_args(argv)


def _resolve_config(args: argparse.Namespace) -> ProvisionConfig:
    if args.config is not None:
        cfg = load_config(args.config)
    else:
        cfg = load_config(DEFAULT_CONFIG_PATH, required=False)
    overrides = {
        k: getattr(args, k, None)
        for k in (
            "csv_path",
            "tenant_id",
            "log_path",
            "add_to_group_id",
            "skip_existing",
            "dry_run",
            "throttle_delay_seconds",
            "send_invitation_message",
            "custom_message",
            "redirect_url",
            "domain_suffix",
        )
    }
    cfg = apply_overrides(cfg, **overrides)
    if args.auth_method:
        cfg = apply_overrides(cfg, auth=replace(cfg.auth, method=args.auth_method))
    if not cfg.csv_path:
        raise ConfigError("csv path not configured (use --csv or csv_path in config)")
    return cfg


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] が渡された場合に sys.argv を読まないよう None のときのみ参照
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = _resolve_config(args)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if cfg.tenant_is_placeholder:
        logger.warning(f"tenant_id is the placeholder '{cfg.tenant_id}'; set AZURE_TENANT_ID or --tenant-id")

    pipeline = args.pipeline
    logger.info(f"{pipeline}: reading {cfg.csv_path}")

    try:
        with directory_session(cfg) as client:
            try:
                rows = load_input(pipeline, Path(cfg.csv_path))
            except InputError as e:
                logger.error(f"input: {e}")
                return EXIT_FATAL
            logger.info(f"{len(rows)} rows loaded")
            result = run_batch(rows, cfg, client, pipeline)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    log_summary(render_summary_fields(result))
    logger.info(f"result log: {result.log_path}")
    if pipeline == "create" and any(r.generated_secret for r in result.results):
        logger.warning("generated temporary passwords are stored in the result log; handle it as a secret")

    return EXIT_PARTIAL_FAILURE if result.has_errors else EXIT_SUCCESS_ALL
