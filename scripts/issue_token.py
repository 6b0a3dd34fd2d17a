#!/usr/bin/env python3
"""
Issue an access token for a user and store it.

Tokens are signed with JWT_SECRET_KEY, so run this with the same
environment as the API.

Usage:
    python scripts/issue_token.py --user-id <UUID>
    python scripts/issue_token.py --user-id <UUID> --role admin
"""

import argparse
import uuid
from pathlib import Path

from app.core.security import create_access_token

TOKEN_FILE = Path(__file__).parent.parent / ".token"


def issue(user_id: str, role: str) -> str:
    """Create an access token and write it to the token file."""
    token = create_access_token({"sub": user_id, "role": role})

    TOKEN_FILE.write_text(token)

    print(f"Token for {user_id} ({role})")
    print(f"Token: {token}")

    return token


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Issue a StayLedger access token")
    parser.add_argument("--user-id", default=str(uuid.uuid4()))
    parser.add_argument("--role", choices=["host", "admin"], default="host")
    args = parser.parse_args()

    issue(args.user_id, args.role)
