"""Create the first super-admin, or upgrade an existing account.

Usage:
  python scripts/create_superadmin.py

Reads DATABASE_URL etc. from the environment / .env like the app does.
"""

import getpass
import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from campussync import create_app
from campussync.errors import ApiError
from campussync.models.user import User
from campussync.services import accounts


def ask_until(prompt, ask, valid, warning):
    while True:
        value = ask(prompt).strip()
        if valid(value):
            return value
        print(f"   {warning}")


def run(ask=input, ask_secret=getpass.getpass):
    """Interactive flow. Returns the user, or None when cancelled."""
    print("\nCampusSync super-admin setup\n")
    email = ask_until("Email address: ", ask, accounts.is_valid_email,
                      "Invalid email format. Please try again.")
    password = ask_until("Password (min 8 characters): ", ask_secret,
                         lambda p: len(p) >= accounts.MIN_PASSWORD_LENGTH,
                         "Password must be at least 8 characters. Please try again.")
    full_name = ask("Full Name: ").strip()
    phone = ask("Phone Number (optional): ").strip() or None

    if User.query.filter_by(email=email.lower()).first():
        print(f"\nUser with email {email} already exists!")
        answer = ask("Do you want to upgrade this user to superadmin? (yes/no): ").strip().lower()
        if answer not in ("yes", "y"):
            print("Operation cancelled")
            return None
        user = accounts.upgrade_to_superadmin(email)
        print(f"User {user.email} upgraded to superadmin")
        return user

    user = accounts.create_superadmin(email, password, full_name or None, phone)
    print(f"Superadmin created: {user.email} (id {user.id})")
    return user


def main():
    app = create_app()
    with app.app_context():
        try:
            run()
        except ApiError as e:
            print(f"Error: {e.message}")
            sys.exit(1)
        except KeyboardInterrupt:
            print("\nOperation cancelled")
            sys.exit(1)


if __name__ == '__main__':
    main()
