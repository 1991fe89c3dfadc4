import asyncio
import logging
from typing import Callable

from fastapi import FastAPI
from contextlib import asynccontextmanager
from ticketbox.db.init_db import create_database
from ticketbox.db.base import Base
from ticketbox.db.session import engine
from ticketbox.core.config import settings
from ticketbox.core.exception_handlers import register_exception_handlers
from ticketbox.api.v1.router import api_router
from ticketbox.services.notifier import broadcaster
from ticketbox.services.reconciliation import BookingReconciler
from ticketbox.services.sweeper import ExpirySweeper

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def _periodic(name: str, job: Callable[[], int], interval: int) -> None:
    """Run a blocking job off the event loop every `interval` seconds."""
    logger.info("Starting %s every %ds.", name, interval)
    while True:
        # run_once logs and swallows its own errors
        await asyncio.to_thread(job)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB exists and create tables
    create_database()
    Base.metadata.create_all(bind=engine)

    tasks = []
    if settings.BACKGROUND_JOBS_ENABLED:
        sweeper = ExpirySweeper(broadcaster)
        reconciler = BookingReconciler(broadcaster)
        tasks.append(asyncio.create_task(
            _periodic("expired-hold sweep", sweeper.run_once, settings.SWEEP_INTERVAL_SECONDS)
        ))
        tasks.append(asyncio.create_task(
            _periodic("booking reconciliation", reconciler.run_once, settings.RECONCILE_INTERVAL_SECONDS)
        ))
    yield

    # Shutdown: cancel background tasks
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass


from fastapi.middleware.cors import CORSMiddleware

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
def read_root():
    return {"Hello": "Ticketbox"}
