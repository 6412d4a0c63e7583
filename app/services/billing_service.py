"""
Subscription billing through the Stripe REST API.

Checkout sessions and customer portal sessions are created over httpx with
Stripe's form encoding; webhook payloads are verified against the
``Stripe-Signature`` header (HMAC-SHA256 over "{timestamp}.{payload}").

Webhook handling re-applies the same values on re-delivery of
``customer.subscription.*`` events. ``checkout.session.completed`` is not
guarded against duplicate delivery.
"""
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from app.core.config import settings
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.schemas.billing import PlanEnum

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


class BillingError(Exception):
    pass


class WebhookSignatureError(BillingError):
    pass


class WebhookPayloadError(BillingError):
    pass


def _flatten(params: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """Stripe form encoding: {"a": {"b": 1}, "c": [{"d": 2}]} -> a[b]=1, c[0][d]=2."""
    items: List[Tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            items.extend(_flatten(value, name))
        elif isinstance(value, (list, tuple)):
            for i, element in enumerate(value):
                if isinstance(element, dict):
                    items.extend(_flatten(element, f"{name}[{i}]"))
                else:
                    items.append((f"{name}[{i}]", str(element)))
        elif isinstance(value, bool):
            items.append((name, "true" if value else "false"))
        else:
            items.append((name, str(value)))
    return items


def _object_id(value: Any) -> Optional[str]:
    # Stripe sends either an id or an expanded object
    if isinstance(value, dict):
        return value.get("id")
    return value


class BillingService:
    TIMEOUT = 15.0

    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.secret_key = secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        self.api_base = settings.STRIPE_API_BASE

    def price_id_for(self, plan: PlanEnum) -> str:
        return {
            PlanEnum.TRAINER: settings.STRIPE_TRAINER_PRICE_ID,
            PlanEnum.STUDIO: settings.STRIPE_STUDIO_PRICE_ID,
            PlanEnum.GYM: settings.STRIPE_GYM_PRICE_ID,
        }[plan]

    async def _post(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.secret_key:
            raise BillingError("Billing is not configured: set STRIPE_SECRET_KEY")
        try:
            async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
                response = await client.post(
                    f"{self.api_base}{path}",
                    content=urlencode(_flatten(params)),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    auth=(self.secret_key, ""),
                )
        except httpx.HTTPError as e:
            raise BillingError(f"Could not reach Stripe: {e}") from e

        if response.status_code >= 400:
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                message = response.text[:200]
            raise BillingError(f"Stripe API error {response.status_code}: {message}")
        return response.json()

    async def create_checkout_session(self, user: User, plan: PlanEnum) -> Dict[str, Any]:
        price_id = self.price_id_for(plan)
        if not price_id:
            raise BillingError(f"Price id for plan {plan.value} is not configured")

        metadata = {"user_id": str(user.id), "plan": plan.value}
        params: Dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": f"{settings.APP_URL}/admin/subscription?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{settings.APP_URL}/admin/subscription",
            "subscription_data": {"trial_from_plan": True, "metadata": metadata},
            "metadata": metadata,
        }
        if user.stripe_customer_id:
            params["customer"] = user.stripe_customer_id
        else:
            params["customer_email"] = user.email

        logger.info("Creating checkout session: user=%s plan=%s", user.id, plan.value)
        session = await self._post("/checkout/sessions", params)
        logger.info("Checkout session created: %s", session.get("id"))
        return session

    async def create_portal_session(self, customer_id: str) -> str:
        session = await self._post("/billing_portal/sessions", {
            "customer": customer_id,
            "return_url": f"{settings.APP_URL}/admin/subscription",
        })
        return session["url"]

    def verify_webhook(self, payload: bytes, signature_header: Optional[str], now: Optional[float] = None) -> Dict[str, Any]:
        """Return the event if the signature matches, raise WebhookSignatureError otherwise."""
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not signature_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        timestamp = None
        signatures = []
        for part in signature_header.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                signatures.append(value)
        if timestamp is None or not signatures:
            raise WebhookSignatureError("Malformed Stripe-Signature header")

        signed_payload = f"{timestamp}.".encode("utf-8") + payload
        expected = hmac.new(self.webhook_secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            raise WebhookSignatureError("No signature matches the payload")

        try:
            age = (now if now is not None else time.time()) - int(timestamp)
        except ValueError:
            raise WebhookSignatureError("Malformed timestamp in Stripe-Signature header")
        if age > SIGNATURE_TOLERANCE_SECONDS:
            raise WebhookSignatureError("Timestamp outside the tolerance zone")

        try:
            return json.loads(payload)
        except ValueError as e:
            raise WebhookPayloadError("Webhook payload is not valid JSON") from e

    async def _user_from_metadata(self, users: UserRepository, obj: Dict[str, Any]) -> Optional[User]:
        raw_user_id = (obj.get("metadata") or {}).get("user_id")
        if not raw_user_id:
            return None
        try:
            return await users.get_by_id(int(raw_user_id))
        except ValueError:
            return None

    async def apply_event(self, event: Dict[str, Any], users: UserRepository) -> str:
        """Apply a verified webhook event. Returns a short outcome label."""
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            user = await self._user_from_metadata(users, obj)
            customer_id = _object_id(obj.get("customer"))
            subscription_id = _object_id(obj.get("subscription"))
            if user is None or not customer_id or not subscription_id:
                logger.error("Webhook error: missing metadata on checkout session %s", obj.get("id"))
                raise WebhookPayloadError("Missing metadata")
            await users.update_fields(
                user,
                stripe_customer_id=customer_id,
                stripe_subscription_id=subscription_id,
                stripe_subscription_status="active",
            )
            logger.info("Subscription created for user %s", user.id)
            return "subscription_created"

        if event_type == "customer.subscription.updated":
            user = await self._user_from_metadata(users, obj)
            if user is None:
                logger.error("Webhook error: missing user_id on subscription %s", obj.get("id"))
                raise WebhookPayloadError("Missing user_id metadata")
            await users.update_fields(
                user,
                stripe_subscription_id=obj.get("id"),
                stripe_subscription_status=obj.get("status"),
            )
            logger.info("Subscription status for user %s is now %s", user.id, obj.get("status"))
            return "subscription_updated"

        if event_type == "customer.subscription.deleted":
            user = await self._user_from_metadata(users, obj)
            if user is None:
                logger.error("Webhook error: missing user_id on subscription %s", obj.get("id"))
                raise WebhookPayloadError("Missing user_id metadata")
            await users.update_fields(
                user,
                stripe_subscription_id=None,
                stripe_subscription_status="canceled",
            )
            logger.info("Subscription canceled for user %s", user.id)
            return "subscription_canceled"

        logger.info("Unhandled webhook event type %s", event_type)
        return "unhandled"


billing_service = BillingService()
