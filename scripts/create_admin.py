"""Create or update the dashboard admin account and the default contact info row."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure the project root is on sys.path so ``clinic`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from clinic import create_app
from clinic.extensions import db
from clinic.models import AuthAccount, ContactInfo, User


def create_admin(email: str, password: str, name: str) -> None:
    if len(password) < 8:
        print("Error: the password must have at least 8 characters")
        return

    app = create_app()
    email = email.strip().lower()

    with app.app_context():
        db.create_all()

        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(name=name, email=email, role="admin")
            db.session.add(user)
            db.session.flush()
            print(f"Created admin user: {email}")
        else:
            user.name = name
            print(f"Updating existing user: {email}")

        account = db.session.get(AuthAccount, user.user_id)
        if account is None:
            account = AuthAccount(user_id=user.user_id)
            db.session.add(account)

        account.password_hash = generate_password_hash(password)

        if ContactInfo.query.first() is None:
            db.session.add(ContactInfo(buffer_minutes=app.config["DEFAULT_BUFFER_MINUTES"]))
            print(f"Created contact info with a {app.config['DEFAULT_BUFFER_MINUTES']} minute buffer")

        db.session.commit()

        print(f"Password for admin '{email}' has been set successfully.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the dashboard admin account.")
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument("--name", default="Admin", help="Display name (default: Admin)")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    create_admin(args.email, args.password, args.name)


if __name__ == "__main__":
    main()
