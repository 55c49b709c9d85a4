"""Command line interface: ``icsfeed export``, ``serve``, ``secret`` and ``forget``."""

import argparse
import getpass
import io
import logging
import sys
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import List, Optional

from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

from icsfeed import __version__
from icsfeed.config.constants import (
    DEFAULT_AUTH_BIND_ADDRESS,
    DEFAULT_BIND_ADDRESS,
    DEFAULT_CONFIG_FILE,
    DEFAULT_PUBLIC_URI,
    DEFAULT_TOKEN_DIR,
    ENV_BIND_ADDR,
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    ENV_CONFIG_FILE,
    ENV_DEBUG,
    ENV_LOGFILE,
    ENV_PUBLIC_URI,
    ENV_TOKEN_DIR,
    FORMAT_ICS,
    LOG_FORMAT,
)
from icsfeed.config.settings import OAuthSettings, ServerSettings, split_address
from icsfeed.core.ics_builder import compile_feed
from icsfeed.core.policy import HIDEABLE_FIELDS, OVERWRITABLE_FIELDS, ExportPolicy, FieldRules, TimeWindow
from icsfeed.core.timezone_utils import to_utc, utc_now
from icsfeed.exceptions.errors import ConfigurationError, ExportIOError, FeedError
from icsfeed.storage.env_storage import get_default_token_dir
from icsfeed.storage.key_manager import load_crypt_secret, lookup_setting, save_crypt_secret
from icsfeed.storage.vault import CredentialVault
from icsfeed.utils.masking import mask_account

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def configure_logging(debug: bool = False, logfile: Optional[str] = None) -> None:
    """Configure the root logger once for the whole process."""
    handlers: List[logging.Handler] = []
    if logfile:
        handlers.append(logging.FileHandler(logfile, mode="a", encoding="utf-8"))
    else:
        handlers.append(logging.StreamHandler(sys.stderr))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="icsfeed",
        description="Export Google Calendar calendars as iCalendar documents.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--logfile",
        default=lookup_setting(ENV_LOGFILE),
        help="Logfile to write to (env: LOGFILE)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=(lookup_setting(ENV_DEBUG, "") or "").lower() in _TRUTHY,
        help="Enable debug log (env: DEBUG)",
    )
    parser.add_argument(
        "--client-id",
        default=lookup_setting(ENV_CLIENT_ID),
        help="OAuth client id (env: CLIENT_ID)",
    )
    parser.add_argument(
        "--client-secret",
        default=lookup_setting(ENV_CLIENT_SECRET),
        help="OAuth client secret (env: CLIENT_SECRET)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # export
    export_parser = subparsers.add_parser(
        "export", aliases=["e"], help="Export a calendar once"
    )
    export_parser.add_argument(
        "--account", required=True, help="Google account to use in the format <user@domain.com>"
    )
    export_parser.add_argument("--calendar", required=True, help="Which calendar to use")
    export_parser.add_argument("--format", default=FORMAT_ICS, help="Which format to export to")
    export_parser.add_argument(
        "--start-from", help="RFC 3339 time to start exporting events from (default: now)"
    )
    export_parser.add_argument(
        "--end-on", help="RFC 3339 time to stop exporting events on (default: one month from now)"
    )
    export_parser.add_argument("--output", default="-", help="Where to export to (- for stdout)")
    export_parser.add_argument(
        "--auth-bind-address",
        default=DEFAULT_AUTH_BIND_ADDRESS,
        help="Bind to this address for the Google authentication",
    )
    export_parser.add_argument(
        "--token-dir",
        default=str(get_default_token_dir()),
        help="Directory for the encrypted tokens",
    )
    export_parser.add_argument("--crypt-secret", help="Secret to encrypt the tokens with")
    for name in HIDEABLE_FIELDS:
        export_parser.add_argument(
            f"--hide-{name.replace('_', '-')}",
            dest=f"hide_{name}",
            action="store_true",
            help=f"Hide {name.replace('_', ' ')}",
        )
    for name in OVERWRITABLE_FIELDS:
        export_parser.add_argument(
            f"--overwrite-{name.replace('_', '-')}",
            dest=f"overwrite_{name}",
            metavar="VALUE",
            help=f"Overwrite {name.replace('_', ' ')} with this value",
        )
    export_parser.set_defaults(handler=cmd_export)

    # serve
    serve_parser = subparsers.add_parser(
        "serve", aliases=["s"], help="Serve calendars as HTTP feeds"
    )
    serve_parser.add_argument(
        "--config",
        default=lookup_setting(ENV_CONFIG_FILE, DEFAULT_CONFIG_FILE),
        help="Feed configuration file (env: CONFIG_FILE)",
    )
    serve_parser.add_argument(
        "--bind-address",
        default=lookup_setting(ENV_BIND_ADDR, DEFAULT_BIND_ADDRESS),
        help="Address to listen on (env: BIND_ADDR)",
    )
    serve_parser.add_argument(
        "--public-uri",
        default=lookup_setting(ENV_PUBLIC_URI, DEFAULT_PUBLIC_URI),
        help="URI the server is reachable at (env: PUBLIC_URI)",
    )
    serve_parser.add_argument(
        "--token-dir",
        default=lookup_setting(ENV_TOKEN_DIR, DEFAULT_TOKEN_DIR),
        help="Existing directory for the encrypted tokens (env: TOKEN_DIR)",
    )
    serve_parser.add_argument("--crypt-secret", help="Secret to encrypt the tokens with")
    serve_parser.set_defaults(handler=cmd_serve)

    # secret
    secret_parser = subparsers.add_parser("secret", help="Store the crypt secret in the OS keyring")
    secret_parser.add_argument("--value", help="Secret to store (prompted if omitted)")
    secret_parser.set_defaults(handler=cmd_secret)

    # forget
    forget_parser = subparsers.add_parser(
        "forget", help="Delete an account's stored token so the next request asks for consent again"
    )
    forget_parser.add_argument("--account", required=True, help="Google account to forget")
    forget_parser.add_argument(
        "--token-dir",
        default=lookup_setting(ENV_TOKEN_DIR, DEFAULT_TOKEN_DIR),
        help="Directory holding the encrypted tokens (env: TOKEN_DIR)",
    )
    forget_parser.add_argument("--crypt-secret", help="Secret the tokens are encrypted with")
    forget_parser.set_defaults(handler=cmd_forget)

    return parser


def _oauth_settings(args: argparse.Namespace) -> OAuthSettings:
    return OAuthSettings(client_id=args.client_id or "", client_secret=args.client_secret or "")


def _parse_time(value: Optional[str], default: datetime, flag: str) -> datetime:
    if not value:
        return default
    try:
        parsed = dateutil_parser.isoparse(value)
    except ValueError as e:
        raise ConfigurationError(f"unable to parse {flag} `{value}'", field=flag) from e
    return to_utc(parsed)


def _export_policy(args: argparse.Namespace) -> ExportPolicy:
    hide = {name: getattr(args, f"hide_{name}") for name in HIDEABLE_FIELDS}
    overwrite = {name: getattr(args, f"overwrite_{name}") for name in OVERWRITABLE_FIELDS}
    return ExportPolicy(
        account=args.account,
        calendar_name=args.calendar,
        formats=(args.format,),
        rules=FieldRules.from_mappings(hide, overwrite),
    )


def _write_output(path: str, document: str) -> None:
    try:
        if path == "-":
            sys.stdout.write(document)
            sys.stdout.flush()
            return
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(document)
    except OSError as e:
        raise ExportIOError(f"unable to write `{path}'", e) from e


def cmd_export(args: argparse.Namespace) -> int:
    from icsfeed.auth.broker import GoogleTokenBroker
    from icsfeed.auth.refresh import TokenRefreshGate

    now = utc_now()
    window = TimeWindow(
        start=_parse_time(args.start_from, now, "start-from"),
        end=_parse_time(args.end_on, now + relativedelta(months=1), "end-on"),
    )
    policy = _export_policy(args)
    broker = GoogleTokenBroker(_oauth_settings(args))
    vault = CredentialVault(args.token_dir, load_crypt_secret(args.crypt_secret), create=True)

    record = vault.load(policy.account)
    if record is None:
        host, port = split_address(args.auth_bind_address)
        record = broker.authorize_local(host, port)
        vault.store(policy.account, record)

    persist = partial(vault.store, policy.account)
    gate = TokenRefreshGate(broker)
    source, _ = gate.ensure_fresh(policy.account, record, on_refresh=persist)

    buf = io.StringIO()
    count = compile_feed(policy, source, window, buf, fmt=args.format)
    gate.settle(source, on_refresh=persist)

    _write_output(args.output, buf.getvalue())
    logger.info("Exported %d events from %r", count, policy.calendar_name)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from icsfeed.auth.broker import GoogleTokenBroker
    from icsfeed.config.registry import TenantRegistry
    from icsfeed.server.app import create_app, serve

    settings = ServerSettings(
        config_file=Path(args.config),
        bind_address=args.bind_address,
        public_uri=args.public_uri,
        token_dir=Path(args.token_dir),
    )
    oauth = _oauth_settings(args)
    registry = TenantRegistry.from_file(settings.config_file)
    vault = CredentialVault(settings.token_dir, load_crypt_secret(args.crypt_secret))
    broker = GoogleTokenBroker(oauth, redirect_uri=settings.redirect_url)

    serve(create_app(registry, vault, broker), settings)
    return 0


def cmd_secret(args: argparse.Namespace) -> int:
    secret = args.value or getpass.getpass("Crypt secret: ")
    location = save_crypt_secret(secret)
    print(f"Crypt secret stored in {location}")
    return 0


def cmd_forget(args: argparse.Namespace) -> int:
    vault = CredentialVault(args.token_dir, load_crypt_secret(args.crypt_secret))
    if vault.delete(args.account):
        logger.info("Removed stored token for %s", mask_account(args.account))
    else:
        logger.info("No stored token for %s", mask_account(args.account))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "handler", None):
        parser.print_help()
        return 1

    configure_logging(args.debug, args.logfile)
    try:
        return args.handler(args)
    except FeedError as e:
        logger.error("error during execution: %s", e)
        logger.debug("Traceback", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
