from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from sopgate.core.approval import ApprovalEngine
from sopgate.core.auth import ApproverDirectory, AttemptLimiter, Authenticator
from sopgate.core.config import Settings, get_settings
from sopgate.db import session as db_session
from sopgate.services.notifications import Notifier, get_notifier as build_notifier


def get_db() -> Generator:
    """Database session dependency."""
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_app_settings() -> Settings:
    return get_settings()


def get_attempt_limiter(request: Request) -> AttemptLimiter:
    """The process-wide limiter created with the app."""
    return request.app.state.attempt_limiter


def get_notifier(request: Request, settings: Settings = Depends(get_app_settings)) -> Notifier:
    notifier = getattr(request.app.state, "notifier", None)
    return notifier or build_notifier(settings)


def get_engine(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_app_settings),
) -> ApprovalEngine:
    return ApprovalEngine(db, notifier, settings=settings)


def get_authenticator(
    db: Session = Depends(get_db),
    limiter: AttemptLimiter = Depends(get_attempt_limiter),
) -> Authenticator:
    return Authenticator(ApproverDirectory(db), limiter)
