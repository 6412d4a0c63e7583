import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.dependencies import get_current_user, get_user_repository
from app.core.rbac import SUBSCRIBED_STATUSES, require_gym_admin
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    PortalResponse,
    SubscriptionStatusResponse,
)
from app.services.billing_service import (
    BillingError,
    WebhookPayloadError,
    WebhookSignatureError,
    billing_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
        data: CheckoutRequest,
        current_user: User = Depends(require_gym_admin),
):
    if not billing_service.price_id_for(data.plan):
        raise HTTPException(status_code=400, detail="Invalid plan selected")
    try:
        session = await billing_service.create_checkout_session(current_user, data.plan)
    except BillingError as e:
        logger.error("Checkout for user %s failed: %s", current_user.id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not create checkout session")
    return CheckoutResponse(session_id=session["id"], url=session.get("url"))


@router.post("/portal", response_model=PortalResponse)
async def create_portal(current_user: User = Depends(require_gym_admin)):
    if not current_user.stripe_customer_id:
        raise HTTPException(status_code=400, detail="No billing account found for this user")
    try:
        url = await billing_service.create_portal_session(current_user.stripe_customer_id)
    except BillingError as e:
        logger.error("Portal session for user %s failed: %s", current_user.id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not open the billing portal")
    return PortalResponse(url=url)


@router.get("/status", response_model=SubscriptionStatusResponse)
async def subscription_status(current_user: User = Depends(get_current_user)):
    current = current_user.stripe_subscription_status
    return SubscriptionStatusResponse(status=current, subscribed=current in SUBSCRIBED_STATUSES)


@router.post("/webhook")
async def stripe_webhook(request: Request, users: UserRepository = Depends(get_user_repository)):
    payload = await request.body()
    try:
        event = billing_service.verify_webhook(payload, request.headers.get("stripe-signature"))
    except WebhookSignatureError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")
    except WebhookPayloadError as e:
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    try:
        outcome = await billing_service.apply_event(event, users)
    except WebhookPayloadError as e:
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")
    return {"received": True, "outcome": outcome}
