"""Dodo Payments client - hosted checkout for invoice balances"""

import logging
from typing import Optional

from dodopayments import AsyncDodoPayments  # type: ignore

from ...config import DODO_ADHOC_PRODUCT_ID, DODO_PAYMENTS_API_KEY, DODO_PAYMENTS_ENVIRONMENT

logger = logging.getLogger(__name__)

ENVIRONMENT_ALIASES = {
    "live_mode": "live_mode",
    "live": "live_mode",
    "production": "live_mode",
    "prod": "live_mode",
    "test_mode": "test_mode",
    "test": "test_mode",
    "sandbox": "test_mode",
    "staging": "test_mode",
    "development": "test_mode",
    "dev": "test_mode",
}


def normalize_dodo_environment(env: Optional[str]) -> str:
    """Map deployment-style names onto the SDK's test_mode / live_mode"""
    key = (env or "test_mode").strip().lower()
    if key not in ENVIRONMENT_ALIASES:
        logger.warning(f"⚠️ Unknown DODO_PAYMENTS_ENVIRONMENT '{env}', using test_mode")
    return ENVIRONMENT_ALIASES.get(key, "test_mode")


class CheckoutUnavailable(Exception):
    """Dodo is not configured for invoice checkout"""


class DodoPaymentsService:
    """
    Invoice balances are charged through one pay-what-you-want product,
    priced per checkout session.
    """

    def __init__(
        self,
        api_key: Optional[str] = DODO_PAYMENTS_API_KEY,
        product_id: Optional[str] = DODO_ADHOC_PRODUCT_ID,
        environment: Optional[str] = DODO_PAYMENTS_ENVIRONMENT,
    ):
        self.product_id = product_id
        self.environment = normalize_dodo_environment(environment)
        self.client: Optional[AsyncDodoPayments] = None
        if api_key:
            self.client = AsyncDodoPayments(bearer_token=api_key, environment=self.environment)
            logger.info(f"💳 Dodo Payments ready ({self.environment})")
        else:
            logger.warning("⚠️ DODO_PAYMENTS_API_KEY not set, invoice checkout is disabled")

    def is_available(self) -> bool:
        return self.client is not None and bool(self.product_id)

    async def create_invoice_checkout(
        self,
        amount_cents: int,
        customer_email: str,
        customer_name: str,
        return_url: str,
        metadata: dict,
    ) -> tuple[Optional[str], Optional[str]]:
        """Returns (checkout_url, session_id); metadata comes back on the webhook"""
        if not self.is_available():
            raise CheckoutUnavailable("Dodo Payments is not configured")

        session = await self.client.checkout_sessions.create(
            product_cart=[{"product_id": self.product_id, "quantity": 1, "amount": amount_cents}],
            customer={"email": customer_email, "name": customer_name},
            metadata=metadata,
            return_url=return_url,
        )
        logger.info(f"💳 Checkout {session.session_id} opened for {amount_cents} cents")
        return session.checkout_url, session.session_id


dodo_service = DodoPaymentsService()
