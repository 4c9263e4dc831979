"""
Create (or update) a login account, optionally with the admin role.

Admin routes under /api/admin require `users.role = 'admin'`; there is no
sign-up page, so accounts are provisioned from the command line.

Usage:
  python scripts/create_user.py <account> <password> [--admin] [--name NAME]
"""

import argparse
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app import create_app
from app_services import default_nickname, hash_password
from models import User, db


def upsert_user(account: str, password: str, *, admin: bool = False, name: str = "") -> User:
    user = User.query.filter_by(account=account).first()
    if user is None:
        user = User(account=account)
        db.session.add(user)
    user.password = hash_password(password)
    user.username = name or user.username or default_nickname(account)
    user.role = "admin" if admin else "user"
    db.session.commit()
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or update a login account")
    parser.add_argument("account")
    parser.add_argument("password")
    parser.add_argument("--admin", action="store_true")
    parser.add_argument("--name", default="")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        user = upsert_user(args.account, args.password, admin=args.admin, name=args.name)
        print(f"Done. account={user.account}, role={user.role}")


if __name__ == "__main__":
    main()
