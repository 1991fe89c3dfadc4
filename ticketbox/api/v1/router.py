from fastapi import APIRouter

# Public — seat map, holds
from ticketbox.api.v1.public.seats import router as seats_router

# Public — bookings
from ticketbox.api.v1.public.bookings import router as bookings_router

# Public — seat-change push
from ticketbox.api.v1.public.events import router as events_router

# Admin
from ticketbox.api.v1.admin.showtimes import router as admin_showtimes_router
from ticketbox.api.v1.admin.bookings import router as admin_bookings_router

api_router = APIRouter()

# --- Public: seats & holds ---
api_router.include_router(seats_router)

# --- Public: bookings ---
api_router.include_router(bookings_router)

# --- Public: events ---
api_router.include_router(events_router)

# --- Admin ---
api_router.include_router(admin_showtimes_router)
api_router.include_router(admin_bookings_router)
