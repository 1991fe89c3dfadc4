from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ticketbox.db.session import get_db
from ticketbox.api.deps import get_current_admin_user, get_reconciler
from ticketbox.models.user import User
from ticketbox.schemas.booking import ReconcileResponse
from ticketbox.services.reconciliation import BookingReconciler

router = APIRouter(prefix="/admin/bookings", tags=["Admin - Bookings"])


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile_bookings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
    reconciler: BookingReconciler = Depends(get_reconciler),
):
    """
    Run the pending-booking consistency check now.
    Pending bookings whose seats are no longer all booked to them are
    cancelled and their remaining seats released.
    """
    return ReconcileResponse(cancelled_booking_ids=reconciler.reconcile(db))
