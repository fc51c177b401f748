#!/usr/bin/env python3
"""
SiteGate -- operator CLI.

Usage:
  python main.py hash-password             # prompt, print a bcrypt PASSWORD_HASH
  python main.py hash-password --stdin     # read the password from stdin
  python main.py totp-secret               # new TOTP_SECRET + otpauth:// URI
  python main.py totp-secret --name me@example.com --issuer SiteGate
  python main.py check-config              # validate the environment, exit 1 on error
  python main.py serve                     # run the server under uvicorn

Environment variables (or .env):
  PASSWORD_HASH   bcrypt hash of the accepted password
  TOTP_SECRET     base32 shared secret for the one-time code factor
  AUTH_MODE       auto | password | totp | both (default: auto)
  See core/config.py for the full list.
"""

import argparse
import getpass
import sys

from pydantic import ValidationError

from auth.tokens import BCRYPT_MAX_BYTES, hash_password
from auth.totp import new_secret, provisioning_uri


def _cmd_hash_password(args: argparse.Namespace) -> int:
    if args.stdin:
        password = sys.stdin.readline().rstrip("\r\n")
    else:
        password = getpass.getpass("Password: ")
        if getpass.getpass("Confirm:  ") != password:
            print("  [!] Passwords do not match.", file=sys.stderr)
            return 1
    if not password.strip():
        print("  [!] Password must not be empty.", file=sys.stderr)
        return 1
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        print(f"  [!] Password must be at most {BCRYPT_MAX_BYTES} bytes (bcrypt limit).", file=sys.stderr)
        return 1
    print(hash_password(password, rounds=args.rounds))
    return 0


def _cmd_totp_secret(args: argparse.Namespace) -> int:
    secret = new_secret()
    print(f"TOTP_SECRET={secret}")
    print(provisioning_uri(secret, name=args.name, issuer=args.issuer, step=args.step, digits=args.digits))
    return 0


def _load_settings():
    from core.config import get_settings

    try:
        return get_settings()
    except ValidationError as exc:
        for err in exc.errors():
            print(f"  [!] {err['msg']}", file=sys.stderr)
        return None


def _cmd_check_config(args: argparse.Namespace) -> int:
    settings = _load_settings()
    if settings is None:
        return 1
    print(f"Factors:          {' + '.join(settings.active_factors)}")
    if "totp" in settings.active_factors:
        print(f"TOTP:             {settings.totp_digits} digits, {settings.totp_step}s step, window {settings.totp_window}")
    print(f"Session TTL:      {settings.session_ttl_seconds or 'none (browser session)'}")
    print(f"Secure cookies:   {settings.secure_cookies}")
    print(f"Protected prefix: {settings.protected_prefix} -> {settings.site_dir.resolve()}")
    print(f"Public dir:       {settings.public_dir.resolve()}")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    settings = _load_settings()
    if settings is None:
        return 1
    import uvicorn

    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        proxy_headers=True,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitegate",
        description="Login gate and session control in front of a static site.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py hash-password
  echo 'hunter2' | python main.py hash-password --stdin
  python main.py totp-secret --name alice --issuer SiteGate
  PASSWORD_HASH='$2b$12$...' python main.py check-config
  python main.py serve --port 8080
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("hash-password", help="Print a bcrypt hash suitable for PASSWORD_HASH")
    p.add_argument("--stdin", action="store_true", help="Read the password from stdin instead of prompting")
    p.add_argument("--rounds", type=int, default=12, help="bcrypt cost factor (default: 12)")
    p.set_defaults(func=_cmd_hash_password)

    p = sub.add_parser("totp-secret", help="Generate a TOTP_SECRET and its provisioning URI")
    p.add_argument("--name", default="sitegate", help="Account label shown in the authenticator app")
    p.add_argument("--issuer", default="SiteGate", help="Issuer label shown in the authenticator app")
    p.add_argument("--step", type=int, default=30, help="Time step in seconds (default: 30)")
    p.add_argument("--digits", type=int, default=6, choices=[6, 7, 8], help="Code length (default: 6)")
    p.set_defaults(func=_cmd_totp_secret)

    p = sub.add_parser("check-config", help="Validate the environment and print the effective auth policy")
    p.set_defaults(func=_cmd_check_config)

    p = sub.add_parser("serve", help="Run the server with uvicorn")
    p.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
    p.add_argument("--port", type=int, default=None, help="Bind port (default: PORT or 10000)")
    p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")
    p.set_defaults(func=_cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
