import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ticketbox.services.notifier import broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["Seat Events"])


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Read and discard client frames; returns once the client goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/showtimes/{showtime_id}")
async def showtime_seat_events(websocket: WebSocket, showtime_id: UUID):
    """
    Push seat-change events for one showtime.
    Delivery is best effort: a client that falls behind loses events and
    should re-read the seat map.
    """
    # Subscribe before accepting so nothing published after the handshake is missed
    sub = broadcaster.subscribe(showtime_id)
    closed = None
    try:
        await websocket.accept()
        closed = asyncio.create_task(_wait_for_disconnect(websocket))
        while True:
            next_event = asyncio.create_task(sub.receive())
            done, _ = await asyncio.wait(
                {next_event, closed}, return_when=asyncio.FIRST_COMPLETED
            )
            if closed in done:
                next_event.cancel()
                break
            await websocket.send_json(next_event.result())
    except (WebSocketDisconnect, RuntimeError) as exc:
        logger.debug("Seat event socket for showtime %s closed: %r", showtime_id, exc)
    finally:
        if closed is not None:
            closed.cancel()
        broadcaster.unsubscribe(sub)
