"""
Create an admin user in the configured record store.

The password is bcrypt-hashed before it is stored. Pass --print-allowlist to
print the ADMIN_EMAILS line to add to the environment file.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portfolio_backend.auth import DuplicateUserError, register_user
from portfolio_backend.config import get_settings
from portfolio_backend.dependencies import get_content_service

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an admin user.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default=None)
    parser.add_argument(
        "--password",
        default=None,
        help="Password for the new user (prompted for when omitted).",
    )
    parser.add_argument(
        "--print-allowlist",
        action="store_true",
        help="Print the ADMIN_EMAILS value including this user.",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    password = args.password or getpass.getpass("Password: ")
    if len(password) < 8:
        logger.error("Password must be at least 8 characters")
        return 1

    users = get_content_service().users
    try:
        user = register_user(
            users, email=args.email, password=password, name=args.name, admin=True
        )
    except DuplicateUserError as exc:
        logger.error("%s", exc)
        return 1
    logger.info("Created admin user %s (%s)", user["email"], user["id"])

    if args.print_allowlist:
        emails = sorted({*settings.admin_emails, user["email"]})
        print(f"ADMIN_EMAILS={json.dumps(emails)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
