from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from ticketbox.core.config import settings
from ticketbox.core.security import decode_token
from ticketbox.db.session import get_db
from ticketbox.models.user import User
from ticketbox.services.booking import BookingFinalizer
from ticketbox.services.notifier import EventNotifier, broadcaster
from ticketbox.services.reconciliation import BookingReconciler
from ticketbox.services.reservation import ReservationManager

reusable_oauth2 = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")

_credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(reusable_oauth2),
) -> User:
    subject = decode_token(token)
    if not subject:
        raise _credentials_exception
    try:
        user_id = UUID(subject)
    except ValueError:
        raise _credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise _credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    return user


def get_current_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def get_notifier() -> EventNotifier:
    return broadcaster


def get_reservation_manager(notifier: EventNotifier = Depends(get_notifier)) -> ReservationManager:
    return ReservationManager(notifier)


def get_booking_finalizer(notifier: EventNotifier = Depends(get_notifier)) -> BookingFinalizer:
    return BookingFinalizer(notifier)


def get_reconciler(notifier: EventNotifier = Depends(get_notifier)) -> BookingReconciler:
    return BookingReconciler(notifier)
