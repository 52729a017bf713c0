"""
Grant the super-admin role to the identity named by SUPER_ADMIN_EMAIL.

Creates the profile if it does not exist yet, then prints the user id and a
fresh access token for the database management endpoint.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

try:
    from dotenv import load_dotenv
    load_dotenv()
except Exception as e:
    print(f"WARNING: Could not load .env file: {e}")

try:
    from sqlalchemy import select
    from propdesk.auth.security import create_access_token
    from propdesk.config import settings
    from propdesk.db import SessionLocal
    from propdesk.models.models import Profile, UserRole
except Exception as e:
    print(f"ERROR: Failed to import database components: {e}")
    print("Make sure you're running this script from the project root directory.")
    sys.exit(1)


def create_super_admin(email: str) -> str:
    db = SessionLocal()
    try:
        profile = db.execute(select(Profile).where(Profile.email == email)).scalar_one_or_none()
        if profile is None:
            profile = Profile(email=email, full_name="Super Admin")
            db.add(profile)
            db.flush()
            print(f"[OK] Profile created for {email}")
        else:
            print(f"[OK] Existing profile found for {email}")

        role = db.execute(
            select(UserRole).where(UserRole.user_id == profile.id, UserRole.role == settings.super_admin_role)
        ).scalar_one_or_none()
        if role is None:
            db.add(UserRole(user_id=profile.id, role=settings.super_admin_role))
            print("[OK] Super Admin role assigned")
        else:
            print("[OK] Super Admin role already assigned")

        db.commit()
        return profile.id
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    email = settings.super_admin_email or (sys.argv[1] if len(sys.argv) > 1 else None)
    if not email:
        print("ERROR: set SUPER_ADMIN_EMAIL or pass the email as the first argument")
        sys.exit(1)
    user_id = create_super_admin(email)
    print()
    print(f"User id: {user_id}")
    print(f"Access token: {create_access_token(user_id, roles=[settings.super_admin_role])}")
