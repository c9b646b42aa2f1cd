"""
FastAPI dependencies (DB session, current user, clock edge)
"""
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from planner.config import get_settings
from planner.infrastructure.db.models import User
from planner.infrastructure.db.session import get_db as _get_db


get_db = _get_db


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Current user from the session cookie.

    Raises:
        HTTPException(401): not logged in or user gone
    """
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user


def local_now() -> datetime:
    return datetime.now(tz=ZoneInfo(get_settings().TIMEZONE))


def resolve_as_of(as_of: date | None) -> date:
    """The only place a missing as_of is replaced by today."""
    return as_of or local_now().date()


def resolve_as_of_datetime(as_of: date | None) -> datetime:
    """Start of the given day in the configured timezone, or now."""
    if as_of is None:
        return local_now()
    return datetime.combine(as_of, time.min, tzinfo=ZoneInfo(get_settings().TIMEZONE))
