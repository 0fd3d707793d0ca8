#!/usr/bin/env python3
import argparse

from lmsdb.database import SessionLocal
from lmsdb.apps.accounts import schemas, services


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Create the first RH account so the admin routes can be used."
    )
    parser.add_argument("--email", default="rh@lms.example.com")
    parser.add_argument("--name", default="RH Admin")
    parser.add_argument(
        "--password",
        required=True,
        help="Initial password; change it after the first login.",
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        existing = services.get_user_by_email(db, args.email)
        if existing:
            print(f"[INFO] User already exists: id={existing.id}, email={existing.email}, roles={existing.roles}")
            return

        user = services.register_user(
            db,
            schemas.UserRegister(
                email=args.email,
                name=args.name,
                password=args.password,
                roles=["rh"],
            ),
        )

        print("[OK] Created RH user:")
        print(f"  id:    {user.id}")
        print(f"  email: {user.email}")
        print(f"  roles: {', '.join(user.roles)}")
    except ValueError as exc:
        print(f"[ERROR] {exc}")
        raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
