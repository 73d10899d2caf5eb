#!/usr/bin/env python3
"""
JWT Token Generator for local development

Issues tokens signed with the configured secret so the dashboard API can be
called without logging in.

Usage:
    python scripts/generate_jwt.py --role ROLE_USER
    python scripts/generate_jwt.py --role ROLE_ADMIN --role ROLE_USER --user admin@example.com
    python scripts/generate_jwt.py --verify <token>
"""

import sys
from datetime import datetime
from pathlib import Path

# Add app to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.auth import ROLE_USER, create_access_token, verify_token
from app.core.errors import APIError


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Generate JWT tokens for the launch dashboard')
    parser.add_argument('--role', action='append', help=f'Add user role (repeatable, default: {ROLE_USER})')
    parser.add_argument('--user', default='dev-user@example.com', help='Token subject')
    parser.add_argument('--verify', help='Verify an existing token instead of generating')

    args = parser.parse_args()

    if args.verify:
        try:
            payload = verify_token(args.verify)
        except APIError as e:
            print(f"Token verification failed: {e.message}")
            sys.exit(1)
        print("Token is valid!")
        print("Payload:")
        for key, value in payload.items():
            print(f"  {key}: {value}")
        return

    token = create_access_token(args.user, args.role or [ROLE_USER])
    payload = verify_token(token)

    print("Generated JWT Token:")
    print("-" * 50)
    print(token)
    print()
    print("Token Payload:")
    for key, value in payload.items():
        if key in ('exp', 'iat'):
            print(f"  {key}: {value} ({datetime.fromtimestamp(value)})")
        else:
            print(f"  {key}: {value}")
    print()
    print("Usage:")
    print(f"  curl -H 'Authorization: Bearer {token}' http://localhost:8000/api/dashboard/kpis")


if __name__ == "__main__":
    main()
