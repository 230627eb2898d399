"""Mark a user's email as confirmed (development helper).

Usage:
  python scripts/confirm_user.py <email>
"""

import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from campussync import create_app
from campussync.errors import NotFound
from campussync.services.accounts import confirm_email


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("Usage: python scripts/confirm_user.py <email>")
        return 2
    app = create_app()
    with app.app_context():
        try:
            user = confirm_email(argv[0])
        except NotFound as e:
            print(e.message)
            return 1
        print(f"User confirmed: {user.email} (id {user.id}) at {user.email_confirmed_at.isoformat()}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
