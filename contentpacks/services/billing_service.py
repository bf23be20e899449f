"""
Billing service for Stripe webhook events.

Stripe events only change a user's entitlement level: a completed checkout
or a live subscription grants PRO, a deleted or lapsed subscription returns
the user to FREE.
"""
import logging
from typing import Dict, Optional, Tuple
from sqlalchemy.orm import Session

from contentpacks.db.models.user import User

logger = logging.getLogger(__name__)

ENTITLEMENT_FREE = "FREE"
ENTITLEMENT_PRO = "PRO"

# Subscription statuses that keep PRO access
ACTIVE_SUBSCRIPTION_STATUSES = ["active", "trialing"]


def _parse_user_id(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def find_user(
    db: Session,
    user_id=None,
    email: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> Optional[User]:
    """Find a user by id, then email, then Stripe customer id."""
    parsed_id = _parse_user_id(user_id)
    if parsed_id is not None:
        user = db.query(User).filter(User.id == parsed_id).first()
        if user:
            return user
    if email:
        user = db.query(User).filter(User.email == email).first()
        if user:
            return user
    if customer_id:
        return db.query(User).filter(User.stripe_customer_id == customer_id).first()
    return None


def set_entitlement(db: Session, user: User, level: str, customer_id: Optional[str] = None) -> User:
    """
    Persist a user's entitlement level.

    Args:
        db: Database session
        user: User to update
        level: "FREE" or "PRO"
        customer_id: Stripe customer id to remember, if known
    """
    previous = user.entitlement_level
    user.entitlement_level = level
    if customer_id:
        user.stripe_customer_id = customer_id
    db.commit()
    db.refresh(user)
    logger.info(f"Entitlement updated: user_id={user.id}, from={previous}, to={level}")
    return user


def handle_checkout_session_completed(event_data: Dict, db: Session) -> User:
    """
    Handle checkout.session.completed webhook event.

    Args:
        event_data: Stripe event data object
        db: Database session

    Returns:
        Updated user
    """
    session_data = event_data.get("object", {})
    metadata = session_data.get("metadata") or {}
    customer_id = session_data.get("customer")

    user = find_user(
        db,
        user_id=session_data.get("client_reference_id") or metadata.get("user_id"),
        email=session_data.get("customer_email") or (session_data.get("customer_details") or {}).get("email"),
        customer_id=customer_id,
    )
    if not user:
        raise ValueError("User not found for checkout session")

    return set_entitlement(db, user, ENTITLEMENT_PRO, customer_id=customer_id)


def handle_subscription_changed(event_data: Dict, db: Session) -> User:
    """
    Handle customer.subscription.created / customer.subscription.updated.

    Active or trialing subscriptions grant PRO; any other status revokes it.
    """
    subscription_data = event_data.get("object", {})
    customer_id = subscription_data.get("customer")
    status = subscription_data.get("status", "active")
    metadata = subscription_data.get("metadata") or {}

    user = find_user(db, user_id=metadata.get("user_id"), customer_id=customer_id)
    if not user:
        raise ValueError(f"User not found for customer_id={customer_id}")

    level = ENTITLEMENT_PRO if status in ACTIVE_SUBSCRIPTION_STATUSES else ENTITLEMENT_FREE
    logger.info(f"Subscription changed: user_id={user.id}, status={status}, entitlement={level}")
    return set_entitlement(db, user, level, customer_id=customer_id)


def handle_subscription_deleted(event_data: Dict, db: Session) -> User:
    """
    Handle customer.subscription.deleted webhook event.
    Downgrades user to FREE.
    """
    subscription_data = event_data.get("object", {})
    customer_id = subscription_data.get("customer")
    metadata = subscription_data.get("metadata") or {}

    user = find_user(db, user_id=metadata.get("user_id"), customer_id=customer_id)
    if not user:
        raise ValueError(f"User not found for customer_id={customer_id}")

    return set_entitlement(db, user, ENTITLEMENT_FREE)


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_changed,
    "customer.subscription.updated": handle_subscription_changed,
    "customer.subscription.deleted": handle_subscription_deleted,
}


def process_stripe_event(event: Dict, db: Session) -> Tuple[bool, str]:
    """
    Dispatch a verified Stripe event.

    Returns:
        (processed, message); unhandled event types count as processed
    """
    event_type = event["type"]
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled Stripe event type: {event_type}")
        return True, f"Event type {event_type} not handled"

    try:
        user = handler(event["data"], db)
    except ValueError as e:
        db.rollback()
        logger.warning(f"Stripe event not applied: event_id={event.get('id')}, type={event_type}, error={e}")
        return False, str(e)

    return True, f"Entitlement for user {user.id} set to {user.entitlement_level}"
