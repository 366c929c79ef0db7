"""CLI entrypoints for dashboard auth operational tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence

from pydantic import ValidationError

from dashboard_auth.config import configure_structlog, get_settings
from dashboard_auth.core.sessions import get_session_service
from dashboard_auth.db.session import dispose_engine, get_session_factory
from dashboard_auth.schemas.auth import RegisterRequest
from dashboard_auth.services.user_service import UserService


async def _run_purge_expired_sessions() -> int:
    """Delete sessions whose refresh token has expired."""
    try:
        purged = await get_session_service().purge_expired_sessions()
    finally:
        await dispose_engine()
    print(json.dumps({"purged": purged}))
    return 0


async def _run_seed_user(name: str, username: str, email: str | None, password: str) -> int:
    """Create a password user, or reset the password of an existing one."""
    user_service = UserService()
    try:
        async with get_session_factory()() as db_session:
            existing = await user_service.get_user_by_username(db_session, username)
            if existing is None:
                user = await user_service.register_user(
                    db_session=db_session,
                    name=name,
                    username=username,
                    email=email,
                    password=password,
                )
                status = "created"
            else:
                existing.password = user_service.hash_password(password)
                await db_session.commit()
                user = existing
                status = "updated"
    finally:
        await dispose_engine()

    print(json.dumps({"status": status, "user_id": user.id, "username": user.username}))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported operational commands."""
    parser = argparse.ArgumentParser(prog="python -m dashboard_auth.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("purge-expired-sessions")

    seed_parser = subcommands.add_parser("seed-user")
    seed_parser.add_argument("--name", required=True)
    seed_parser.add_argument("--username", required=True)
    seed_parser.add_argument("--email", default=None)
    seed_parser.add_argument("--password", required=True)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_structlog(get_settings())
    if args.command == "purge-expired-sessions":
        return asyncio.run(_run_purge_expired_sessions())
    if args.command == "seed-user":
        try:
            payload = RegisterRequest(
                name=args.name,
                username=args.username,
                email=args.email,
                password=args.password,
            )
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            )
            parser.error(f"invalid seed-user arguments: {problems}")
        return asyncio.run(
            _run_seed_user(
                name=payload.name,
                username=payload.username,
                email=payload.email,
                password=payload.password,
            )
        )
    parser.error("Unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
