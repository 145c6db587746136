from __future__ import annotations

import argparse
import os
import sys

sys.path.append("/app")
sys.path.append(os.getcwd())

from sqlalchemy import select

from app.core.errors import DomainError
from app.db.session import SessionLocal
from app.models.user import User, UserRole
from app.services.accounts import AccountService


def main() -> None:
    p = argparse.ArgumentParser(description="Create a student or parent account.")
    p.add_argument("--email", required=True)
    p.add_argument("--password", required=True)
    p.add_argument("--nick-name", required=True)
    p.add_argument("--age", type=int, required=True)
    p.add_argument("--role", choices=[r.value for r in UserRole], default=UserRole.student.value)
    p.add_argument("--parent-email", default=None, help="Link the new student to this parent")
    args = p.parse_args()

    with SessionLocal() as db:
        service = AccountService(db)
        try:
            user = service.signup(
                email=args.email,
                password=args.password,
                nick_name=args.nick_name,
                age=args.age,
                role=UserRole(args.role),
            )
            if args.parent_email:
                parent = db.scalar(select(User).where(User.email == args.parent_email, User.role == UserRole.parent))
                if parent is None:
                    raise SystemExit(f"parent not found: {args.parent_email}")
                service.add_child(parent, user.email)
            db.commit()
        except DomainError as e:
            db.rollback()
            raise SystemExit(f"error: {e.message}") from e
        print(f"created {user.role.value} {user.email} id={user.id}")


if __name__ == "__main__":
    main()
