"""
Management commands (run from repo root, DATABASE_URL required).

  python commands.py init-db
  python commands.py create-user recruiter@example.com Passw0rd1 --user-type recruiter --name "Rita"
  python commands.py conversations 12        # list a user's conversations with unread counts

Other handy invocations:
  python -m pytest                                    # full test suite (DB tests skip without DATABASE_URL)
  python -m dotenv run -- python -m uvicorn app.api:app --reload
"""
from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from core.database import (
    USER_TYPES,
    create_user,
    get_user_by_email,
    init_db,
    list_conversations_for_user,
)

log = logging.getLogger("commands")


def _cmd_init_db(_args) -> None:
    init_db()
    print("Schema ready.")


def _cmd_create_user(args) -> None:
    if get_user_by_email(args.email):
        raise SystemExit(f"User already exists: {args.email}")
    user_id = create_user(
        args.email,
        args.password,
        role=args.role,
        user_type=args.user_type,
        display_name=args.name,
    )
    print(f"Created {args.user_type} id={user_id}")


def _cmd_conversations(args) -> None:
    rows = list_conversations_for_user(args.user_id)
    if not rows:
        print("No conversations.")
        return
    for row in rows:
        state = "active" if row["is_active"] else "closed"
        print(
            f"#{row['id']} recruiter={row['recruiter_id']} job_seeker={row['job_seeker_id']} "
            f"posting={row['job_posting_id']} {state} unread={row['unread_count']} "
            f"last={row['last_message_at']}"
        )


def main(argv=None) -> None:
    load_dotenv(override=True)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="AutoJobr chat management commands.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and indexes").set_defaults(func=_cmd_init_db)

    p_user = sub.add_parser("create-user", help="Create a recruiter or job seeker account")
    p_user.add_argument("email")
    p_user.add_argument("password")
    p_user.add_argument("--user-type", choices=USER_TYPES, default="job_seeker")
    p_user.add_argument("--name", default=None, help="Display name")
    p_user.add_argument("--role", default="user")
    p_user.set_defaults(func=_cmd_create_user)

    p_conv = sub.add_parser("conversations", help="List a user's conversations")
    p_conv.add_argument("user_id", type=int)
    p_conv.set_defaults(func=_cmd_conversations)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
