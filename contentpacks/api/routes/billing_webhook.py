import logging
from datetime import datetime, timezone

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from contentpacks.core.auth_dependency import get_db
from contentpacks.core.config import IDEMPOTENCY_TTL_SECONDS, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from contentpacks.services.billing_service import process_stripe_event
from contentpacks.services.idempotency_store import IdempotencyStore, get_idempotency_store

logger = logging.getLogger(__name__)

if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY

router = APIRouter(prefix="/billing", tags=["Billing Webhook"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
    store: IdempotencyStore = Depends(get_idempotency_store),
):
    payload = await request.body()

    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing stripe signature")
    if not STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    try:
        event = stripe.Webhook.construct_event(
            payload=payload,
            sig_header=stripe_signature,
            secret=STRIPE_WEBHOOK_SECRET,
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Stripe webhook verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    # ✅ Stripe retries deliveries; each event id is applied once
    idempotency_key = f"stripe:{event['id']}"
    if not store.try_create(idempotency_key, IDEMPOTENCY_TTL_SECONDS):
        logger.info(f"Duplicate Stripe event ignored: event_id={event['id']}, type={event['type']}")
        return {"received": True, "idempotent": True}

    try:
        processed, message = process_stripe_event(event, db)
    except Exception:
        store.release(idempotency_key)
        logger.error(f"Stripe event failed, key released for retry: event_id={event['id']}, type={event['type']}")
        raise

    if not processed:
        # Let Stripe's retry reach the handler again
        store.release(idempotency_key)

    logger.info(f"Stripe event handled: event_id={event['id']}, type={event['type']}, processed={processed}")
    return {
        "received": True,
        "eventId": event["id"],
        "eventType": event["type"],
        "processed": processed,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
