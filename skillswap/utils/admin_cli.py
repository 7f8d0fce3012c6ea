#!/usr/bin/env python
"""
Operator commands that can't go through the API.

Usage:
    python -m skillswap.utils.admin_cli bootstrap-admin --user-id USER_ID
    python -m skillswap.utils.admin_cli dev-token --user-id USER_ID [--email EMAIL]

bootstrap-admin creates the first administrator and refuses once any admin
exists (later grants go through PUT /api/v1/admin/users/{id}/role). The grant
is recorded in role_grants with no granting admin. dev-token mints a token for local development; it refuses
to run in production.
"""

import argparse
import asyncio
import sys
from datetime import timedelta

from ..core.config import get_settings
from ..core.exceptions import SkillSwapError
from ..core.logging import setup_logging
from ..core.security import create_access_token
from ..core.store import get_store
from ..services.user_service import UserService


async def bootstrap_admin(user_id: str) -> int:
    users = UserService(get_store())
    try:
        user = await users.bootstrap_admin(user_id)
    except SkillSwapError as e:
        print(f"Error: {e.detail}", file=sys.stderr)
        return 1
    print(f"User {user['id']} ({user.get('email')}) is now an administrator")
    return 0


def dev_token(user_id: str, email: str, minutes: int) -> int:
    settings = get_settings()
    if settings.environment == "production":
        print("Error: dev-token is disabled in production", file=sys.stderr)
        return 1
    claims = {"sub": user_id}
    if email:
        claims["email"] = email
    print(create_access_token(claims, timedelta(minutes=minutes)))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="SkillSwap operator commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    bootstrap = subparsers.add_parser("bootstrap-admin", help="Grant the admin role without an existing admin")
    bootstrap.add_argument("--user-id", type=str, required=True, help="Profile id to promote")

    token = subparsers.add_parser("dev-token", help="Mint an access token for local development")
    token.add_argument("--user-id", type=str, required=True, help="Value for the 'sub' claim")
    token.add_argument("--email", type=str, default="", help="Value for the 'email' claim")
    token.add_argument("--minutes", type=int, default=60, help="Token lifetime in minutes")

    args = parser.parse_args(argv)
    setup_logging()

    if args.command == "bootstrap-admin":
        return asyncio.run(bootstrap_admin(args.user_id))
    return dev_token(args.user_id, args.email, args.minutes)


if __name__ == "__main__":
    sys.exit(main())
