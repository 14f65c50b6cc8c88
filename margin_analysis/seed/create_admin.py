import getpass
import sys

from margin_analysis.database import SessionLocal, engine, Base
from margin_analysis import models  # noqa: F401  (register tables)
from margin_analysis.models.admin import User
from margin_analysis.core.security import hash_password


def main():
    email = input("Admin email: ").strip()
    password = getpass.getpass("Admin password: ")
    if not email or not password:
        print("Email and password are required.")
        sys.exit(1)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.role = "admin"
            user.hashed_password = hash_password(password)
            print(f"Promoted existing user {email} to admin.")
        else:
            db.add(User(
                email=email,
                username=email.split("@")[0],
                hashed_password=hash_password(password),
                role="admin",
            ))
            print(f"Created admin user {email}.")
        db.commit()
    finally:
        db.close()

if __name__ == "__main__":
    main()
