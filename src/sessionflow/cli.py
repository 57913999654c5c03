# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""sessionflow CLI: send authenticated requests and manage the active scope.

Usage:
    python -m sessionflow.cli request METHOD PATH [--json BODY] [--param K=V ...] [--scope ID]
    python -m sessionflow.cli scope show|set ID|clear
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any
from urllib.parse import urlparse

from .client import SessionClient
from .config import ClientConfig
from .errors import NormalizedError
from .host import HostNavigator
from .logging_config import configure
from .scope_store import CookieJarStore, ScopedContextStore, open_cookie_jar, parse_scope_id


def _build_config(args: argparse.Namespace) -> ClientConfig:
    config = ClientConfig.from_env()
    changes: dict[str, object] = {}
    if args.base_url:
        changes["base_url"] = args.base_url
    if args.cookie_file:
        changes["cookie_path"] = args.cookie_file
    return config.replace(**changes) if changes else config


def _parse_params(pairs: list[str] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"--param expects KEY=VALUE, got {pair!r}")
        params[key] = value
    return params


def _announce_redirect(path: str) -> None:
    print(f"Session expired. Log in again ({path}).", file=sys.stderr)


async def _run_request(args: argparse.Namespace, config: ClientConfig) -> Any:
    body = json.loads(args.json) if args.json else None
    headers = {config.scope_header: str(args.scope)} if args.scope else {}
    navigator = HostNavigator(on_navigate=_announce_redirect)
    async with SessionClient(config, navigator=navigator) as client:
        if args.token:
            client.set_access_token(args.token)
        return await client.request(
            args.method,
            args.path,
            body=body,
            params=_parse_params(args.param),
            headers=headers,
        )


def cmd_request(args: argparse.Namespace) -> None:
    """Send one request and print the unwrapped payload as JSON."""
    config = _build_config(args)
    result = asyncio.run(_run_request(args, config))
    print(json.dumps(result, indent=2, ensure_ascii=False))


def cmd_scope(args: argparse.Namespace) -> None:
    """Show, set, or clear the persisted scope id."""
    config = _build_config(args)
    if not config.cookie_path:
        print("scope commands need --cookie-file or SESSIONFLOW_COOKIE_FILE", file=sys.stderr)
        sys.exit(2)

    jar = open_cookie_jar(config.cookie_path)
    store = ScopedContextStore(
        CookieJarStore(jar, urlparse(config.base_url).hostname or "localhost"),
        key=config.scope_key,
        max_age=config.scope_max_age,
    )
    if args.action == "set":
        if not args.scope_id:
            print("scope set requires an ID", file=sys.stderr)
            sys.exit(2)
        store.set(parse_scope_id(args.scope_id))
    elif args.action == "clear":
        store.clear()

    current = store.get()
    print("" if current is None else current)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="sessionflow CLI",
        prog="python -m sessionflow.cli",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines on stderr")
    parser.add_argument("--base-url", type=str, metavar="URL", help="API root (default: SESSIONFLOW_BASE_URL)")
    parser.add_argument(
        "--cookie-file",
        type=str,
        metavar="PATH",
        help="Cookie file for session + scope (default: SESSIONFLOW_COOKIE_FILE)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_request = subparsers.add_parser(
        "request",
        help="Send an authenticated request",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s GET /me
  %(prog)s GET /shop --scope 3
  %(prog)s POST /auth/login --json '{"email": "a@b.c", "password": "secret"}'
  %(prog)s GET /public/shops/3/services --param q=haircut""",
    )
    p_request.add_argument("method", type=str.upper, choices=["GET", "POST", "PUT", "PATCH", "DELETE"])
    p_request.add_argument("path", type=str, help="Path relative to the API root")
    p_request.add_argument("--json", type=str, metavar="BODY", help="JSON request body")
    p_request.add_argument("--param", action="append", metavar="K=V", help="Query parameter (repeatable)")
    p_request.add_argument("--scope", type=str, metavar="ID", help="Scope id for this request only")
    p_request.add_argument(
        "--token",
        type=str,
        default=os.environ.get("SESSIONFLOW_ACCESS_TOKEN", ""),
        help=argparse.SUPPRESS,
    )

    p_scope = subparsers.add_parser("scope", help="Manage the persisted active scope")
    p_scope.add_argument("action", choices=["show", "set", "clear"])
    p_scope.add_argument("scope_id", nargs="?", help="Scope id (for 'set')")

    commands = {"request": cmd_request, "scope": cmd_scope}

    args = parser.parse_args(argv)

    configure(json_output=args.json_logs, level="DEBUG" if args.verbose else "WARNING")

    try:
        commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except SystemExit:
        raise
    except NormalizedError as e:
        status = f" (HTTP {e.status_code})" if e.status_code is not None else ""
        print(f"Error [{e.classification.value}]{status}: {e.message}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
