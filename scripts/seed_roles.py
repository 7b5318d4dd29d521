"""
Seed the default organization roles (owner, manager, member, supplier).
Run after the tables exist: python scripts/seed_roles.py
"""
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from verdepm.db import Base, SessionLocal, engine  # noqa: E402
from verdepm.services.members import DEFAULT_ROLES, seed_default_roles  # noqa: E402


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        added = seed_default_roles(db)
    finally:
        db.close()
    print(f"Roles seeded: {added} added, {len(DEFAULT_ROLES) - added} already present")


if __name__ == "__main__":
    main()
