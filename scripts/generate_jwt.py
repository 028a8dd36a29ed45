from __future__ import annotations

import argparse
from datetime import datetime, timedelta

import jwt

ROLES = ("admin", "user", "guest")


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a JWT for the Family Tree API.")
    parser.add_argument("--secret", required=True)
    parser.add_argument("--subject", required=True)
    parser.add_argument("--role", choices=ROLES, default="user")
    parser.add_argument("--hours", type=int, default=12)
    parser.add_argument("--algorithm", default="HS256")
    args = parser.parse_args()

    payload = {
        "sub": args.subject,
        "role": args.role,
        "exp": datetime.utcnow() + timedelta(hours=args.hours),
    }
    token = jwt.encode(payload, args.secret, algorithm=args.algorithm)
    print(token)


if __name__ == "__main__":
    main()
