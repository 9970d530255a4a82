#!/usr/bin/env python3
"""
Create an account in the configured DATABASE_URL and print credentials + JWT.

    python scripts/create_account.py admin --email warden@college.edu
    python scripts/create_account.py user --email student@college.edu --phone 9876543210
    python scripts/create_account.py department --code HOSTEL001
    python scripts/create_account.py admin --email student@college.edu --change-role

Passwords default to ADMIN_PASSWORD / a random token. The script uses the same
app code (importing app.auth) so passwords and tokens are created consistently
with the running backend.
"""
import argparse
import asyncio
import os
import secrets
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "fastapi-backend"))

try:
    from app.auth import AccountExists, create_access_token, create_department, create_user
    from app.database import async_session_factory, init_db
    from app.departments import DEFAULT_DEPARTMENT_NAMES
except Exception as e:
    print("Failed to import application modules:", e, file=sys.stderr)
    sys.exit(2)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0])
    parser.add_argument("kind", choices=["admin", "user", "department"])
    parser.add_argument("--name")
    parser.add_argument("--email")
    parser.add_argument("--password", default=os.environ.get("ADMIN_PASSWORD"))
    parser.add_argument("--phone")
    parser.add_argument("--code", help="department code, e.g. ACAD001")
    parser.add_argument(
        "--change-role",
        action="store_true",
        help="allow switching the role of an existing account with the same e-mail",
    )
    return parser.parse_args(argv)


async def run(args) -> None:
    await init_db()
    password = args.password or secrets.token_urlsafe(12)

    async with async_session_factory() as session:
        if args.kind == "department":
            if not args.code:
                raise SystemExit("--code is required for department accounts")
            code = args.code.strip().upper()
            account = await create_department(
                session,
                name=args.name or DEFAULT_DEPARTMENT_NAMES.get(code, code),
                code=code,
                password=password,
                email=args.email,
                phone_number=args.phone,
            )
            role = "department"
            label = account.code
        else:
            email = args.email or f"{args.kind}-{secrets.token_hex(4)}@example.com"
            account = await create_user(
                session,
                name=args.name or ("Auto Admin" if args.kind == "admin" else "Student"),
                email=email,
                password=password,
                role=args.kind,
                phone_number=args.phone,
                change_role=args.change_role,
            )
            role = args.kind
            label = account.email

    token = create_access_token(subject=account.id, role=role)
    print(f"{role.upper()}_CREATED")
    print(f"id: {account.id}")
    print(f"login: {label}")
    print(f"password: {password}")
    print(f"access_token: {token}")


def main(argv=None):
    try:
        asyncio.run(run(parse_args(argv)))
    except AccountExists as exc:
        raise SystemExit(f"Refusing to change role: {exc}")


if __name__ == "__main__":
    main()
