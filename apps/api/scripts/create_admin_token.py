"""
Create Admin Token

Mints an admin ID token for deployments using the shared-secret identity
provider mode (AUTH_JWT_SECRET). Deployments verifying against a JWKS
endpoint get admin tokens from their identity provider instead, with the
``admin`` claim set on the principal.

Usage:
    cd apps/api
    python scripts/create_admin_token.py admin@example.com --uid admin-1 --minutes 120
"""

import argparse
import sys

from courseapp.core.security import TokenVerificationError, get_identity_provider
from courseapp.core.validation import EMAIL_PATTERN


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mint an admin token (shared-secret mode).")
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("--uid", help="Principal id (defaults to the email)")
    parser.add_argument("--minutes", type=int, default=None, help="Token lifetime in minutes")
    return parser.parse_args(argv)


def create_admin_token(argv: list[str] | None = None) -> int:
    """Print an admin token for the given email."""
    args = parse_args(argv)
    email = args.email.strip().lower()

    if not EMAIL_PATTERN.match(email):
        print(f"Invalid email address: {args.email}", file=sys.stderr)
        return 1

    try:
        token = get_identity_provider().create_access_token(
            subject=args.uid or email,
            email=email,
            admin=True,
            expires_minutes=args.minutes,
        )
    except TokenVerificationError as e:
        print(f"Cannot mint token: {e}. Set AUTH_JWT_SECRET.", file=sys.stderr)
        return 1

    print(f"Admin token for {email}:")
    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(create_admin_token())
