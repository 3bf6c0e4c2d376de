import asyncio
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from jose import JWTError

from bazaar.realtime.broker import ListingBroker
from bazaar.services.factory import get_broker, get_store
from bazaar.services.store import MarketStore, NotFound
from bazaar.utils.auth_helper import ACCESS_PURPOSE, decode_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/listings")
async def listings_channel(
    websocket: WebSocket,
    token: str = "",
    store: MarketStore = Depends(get_store),
    broker: ListingBroker = Depends(get_broker),
):
    """Stream INSERT/UPDATE/DELETE events for the caller's campus."""
    try:
        claims = decode_token(token, ACCESS_PURPOSE)
        profile = await run_in_threadpool(store.get_profile, claims["sub"])
    except (JWTError, NotFound):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if profile.is_banned or not profile.campus_slug:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # subscribe before accepting so no event after the handshake is missed
    subscription = broker.subscribe(profile.campus_slug)
    await websocket.accept()
    logger.info(
        "Realtime subscriber joined listings-campus-%s (%d connected)",
        profile.campus_slug,
        broker.subscriber_count(profile.campus_slug),
    )

    async def forward():
        while True:
            event = await subscription.get()
            await websocket.send_json(event.model_dump(mode="json"))

    sender = asyncio.create_task(forward())

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        subscription.close()

        (outcome,) = await asyncio.gather(sender, return_exceptions=True)
        if isinstance(outcome, Exception):
            logger.warning("Realtime delivery to listings-campus-%s failed: %s", profile.campus_slug, outcome)

        logger.info("Realtime subscriber left listings-campus-%s", profile.campus_slug)
