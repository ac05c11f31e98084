"""
Create (or promote) an administrator account.

Usage:
    python scripts/create_admin.py admin@example.com 'S3cret-pass' "Nom Affiché"

If the email already exists, its profile is promoted to admin and the password
is left unchanged. Print the uid so it can be pinned in ADMIN_UID.
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from transitflow.auth.security import get_password_hash
from transitflow.db import Base, SessionLocal, engine
from transitflow.models.models import User, UserProfile


def create_admin(email: str, password: str, display_name: str = None) -> str:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        email = email.strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            user = User(email=email, display_name=display_name, password_hash=get_password_hash(password))
            db.add(user)
            db.flush()
            print(f"Created user {email}")
        else:
            print(f"User {email} already exists, promoting")

        profile = db.get(UserProfile, user.id)
        if profile is None:
            profile = UserProfile(uid=user.id, email=user.email, display_name=display_name or user.email)
            db.add(profile)
        profile.role = "admin"
        profile.job_title = profile.job_title or "Manager"
        db.commit()
        return user.id
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    uid = create_admin(sys.argv[1], sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None)
    print(f"Admin uid: {uid}")
