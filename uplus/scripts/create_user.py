"""
Create a user (e.g. the first head admin, or a school's first admin). Run from project root:
  python -m uplus.scripts.create_user EMAIL PASSWORD [--role ROLE] [--school-slug SLUG]
Examples:
  python -m uplus.scripts.create_user owner@example.com 'S3cure!pass' --role headadmin
  python -m uplus.scripts.create_user admin@greenfield.edu 'S3cure!pass' --role admin \
      --school-slug greenfield --school-name "Greenfield High"
"""
import argparse
import sys

from uplus.core.config import get_settings
from uplus.core.database import Database
from uplus.core.roles import Role
from uplus.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from uplus.models import School, User


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a U PLUS user (no registration UI).")
    parser.add_argument("email", help="Email address (login identifier)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("--role", default=Role.HEADADMIN.value, choices=[r.value for r in Role])
    parser.add_argument("--username", default=None)
    parser.add_argument("--first-name", default="")
    parser.add_argument("--last-name", default="")
    parser.add_argument("--school-slug", default=None, help="Required for every role except headadmin")
    parser.add_argument("--school-name", default=None, help="Create the school if the slug is new")
    args = parser.parse_args()

    email = args.email.strip().lower()
    if not email or "@" not in email or len(email) > 255:
        print("Invalid email address.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1
    if args.role != Role.HEADADMIN and not args.school_slug:
        print(f"--school-slug is required for role '{args.role}'.", file=sys.stderr)
        return 1

    settings = get_settings()
    database = Database(settings.DATABASE_URL)
    database.open()
    db = database.session()
    try:
        school = None
        if args.role != Role.HEADADMIN:
            school = db.query(School).filter(School.slug == args.school_slug).first()
            if school is None:
                if not args.school_name:
                    print(
                        f"School '{args.school_slug}' not found; pass --school-name to create it.",
                        file=sys.stderr,
                    )
                    return 1
                school = School(name=args.school_name, slug=args.school_slug)
                db.add(school)
                db.flush()

        existing = (
            db.query(User)
            .filter(User.email == email, User.school_id == (school.id if school else None))
            .first()
        )
        if existing:
            print(f"User '{email}' already exists.", file=sys.stderr)
            return 1
        user = User(
            email=email,
            username=args.username.strip().lower() if args.username else None,
            first_name=args.first_name,
            last_name=args.last_name,
            password_hash=hash_password(args.password),
            role=args.role,
            school_id=school.id if school else None,
        )
        db.add(user)
        db.commit()
        where = f" in school '{school.slug}'" if school else ""
        print(f"Created user '{email}' with role '{args.role}'{where}.")
        return 0
    finally:
        db.close()
        database.close()


if __name__ == "__main__":
    sys.exit(main())
