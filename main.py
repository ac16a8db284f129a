#!/usr/bin/env python3
"""
Musafir auth -- rider and driver sessions from the command line.

Usage:
  python main.py serve --port 8000
  python main.py rider register --firstname Asha --email asha@example.com
  python main.py rider login --email asha@example.com
  python main.py rider profile
  python main.py rider logout
  python main.py driver register --firstname Ravi --email ravi@example.com \\
      --color red --plate MH02CB4763 --capacity 4 --type car

The session token is kept in ~/.musafir/session.json (override with
--session-file) so `profile` and `logout` work across invocations.
Passwords are prompted for when --password is not given.

Environment variables:
  SECRET_KEY    Required by `serve`. At least 32 characters.
  MUSAFIR_URL   Server base URL for client commands (default http://localhost:8000).
"""

import argparse
import getpass
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

from auth.models import PrincipalKind
from client.session import DEFAULT_BASE_URL, Admitted, ClientSession, Denied, Redirect, SessionGuard
from client.storage import TokenStorage


def _password(args: argparse.Namespace, confirm: bool = False) -> tuple[str, Optional[str]]:
    if args.password:
        return args.password, args.password
    secret = getpass.getpass("  Password: ")
    again = getpass.getpass("  Confirm password: ") if confirm else None
    return secret, again


def _register_payload(kind: PrincipalKind, args: argparse.Namespace) -> dict[str, Any]:
    fullname = {"firstname": args.firstname}
    if args.lastname:
        fullname["lastname"] = args.lastname
    if kind is PrincipalKind.RIDER:
        secret, again = _password(args, confirm=True)
        return {"fullname": fullname, "email": args.email, "password": secret, "confirmPassword": again}
    secret, _ = _password(args)
    missing = [flag for flag in ("color", "plate", "capacity", "type") if getattr(args, flag) is None]
    if missing:
        raise SystemExit(f"  [!] Driver registration needs: {', '.join('--' + m for m in missing)}")
    return {
        "fullname": fullname,
        "email": args.email,
        "password": secret,
        "vehicle": {"color": args.color, "plate": args.plate, "capacity": args.capacity, "type": args.type},
    }


def _print_result(result) -> int:
    if isinstance(result, Admitted):
        print(json.dumps(result.principal, indent=2))
        return 0
    if isinstance(result, Redirect):
        print(f"  Not signed in. Go to {result.view}")
        return 1
    if isinstance(result, Denied):
        print(f"  [!] {result.message}")
        for err in result.errors:
            print(f"      {err.get('field')}: {err.get('message')}")
        return 1
    return 1


def _run_client(args: argparse.Namespace) -> int:
    kind = PrincipalKind(args.kind)
    storage = TokenStorage(Path(args.session_file) if args.session_file else None)
    guard = SessionGuard(ClientSession(kind, storage), base_url=args.server)

    if args.action == "register":
        return _print_result(guard.register(_register_payload(kind, args)))
    if args.action == "login":
        secret, _ = _password(args)
        return _print_result(guard.login(args.email, secret))
    if args.action == "profile":
        return _print_result(guard.activate())
    # logout
    redirect = guard.logout()
    print(f"  {kind.label} logged out. Next view: {redirect.view}")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _add_client_parser(subparsers, kind: PrincipalKind) -> None:
    p = subparsers.add_parser(kind.value, help=f"{kind.label} session commands")
    p.set_defaults(kind=kind.value, handler=_run_client)
    p.add_argument("action", choices=["register", "login", "profile", "logout"])
    p.add_argument("--email")
    p.add_argument("--password", help="Prompted for when omitted")
    p.add_argument("--firstname")
    p.add_argument("--lastname")
    if kind is PrincipalKind.DRIVER:
        p.add_argument("--color")
        p.add_argument("--plate")
        p.add_argument("--capacity", type=int)
        p.add_argument("--type", choices=["car", "motorcycle", "auto"])


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="musafir-auth",
        description="Rider and driver authentication client and server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--server",
        default=os.environ.get("MUSAFIR_URL", DEFAULT_BASE_URL),
        help="Server base URL (default: $MUSAFIR_URL or %(default)s)",
    )
    parser.add_argument("--session-file", metavar="PATH", help="Where the session token is stored")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the API server with uvicorn")
    serve.set_defaults(handler=_serve)
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    for kind in PrincipalKind:
        _add_client_parser(subparsers, kind)

    args = parser.parse_args()
    if not getattr(args, "handler", None):
        parser.print_help()
        return 1

    if getattr(args, "action", None) in ("register", "login") and not args.email:
        parser.error("--email is required")
    if getattr(args, "action", None) == "register" and not args.firstname:
        parser.error("--firstname is required")

    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
