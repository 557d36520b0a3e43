"""Database seeding for SOP Gate.

Creates the configured default approver so a fresh installation can decide
its first requests.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from sopgate.core.auth.approvers import ApproverDirectory
from sopgate.core.config import Settings, get_settings
from sopgate.db.models import Approver

logger = logging.getLogger(__name__)


def seed_default_approver(db: Session, settings: Optional[Settings] = None) -> Optional[Approver]:
    """
    Create the default approver from settings.

    Idempotent: an existing approver with the configured username is
    returned unchanged (its password is not reset).

    Args:
        db: Database session (flushed, not committed)
        settings: Settings override

    Returns:
        The approver, or None when no default approver is configured
    """
    settings = settings or get_settings()
    username = settings.default_approver_username
    password = settings.default_approver_password

    if not username or not password:
        logger.info("No default approver configured, skipping seed")
        return None

    directory = ApproverDirectory(db)
    existing = directory.find_by_username(username)
    if existing:
        return existing

    return directory.create_approver(
        username,
        password,
        name=settings.default_approver_name,
        email=settings.default_approver_email,
    )


# CLI script for seeding
if __name__ == "__main__":
    import sys
    from sopgate.db.session import SessionLocal, init_db

    init_db()
    db = SessionLocal()
    try:
        approver = seed_default_approver(db)
        if approver is None:
            print("No default approver configured (DEFAULT_APPROVER_USERNAME / DEFAULT_APPROVER_PASSWORD)")
        else:
            print(f"Default approver: {approver.username} (ID: {approver.id})")

        db.commit()
        print("\nSeeding complete!")

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()
