"""
Payment intents through Stripe.
"""

import logging

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)


class PaymentsNotConfigured(Exception):
    """No Stripe secret key is configured."""


class PaymentProviderError(Exception):
    """Stripe rejected or failed the request."""


def create_payment_intent(user, amount, currency=None):
    """
    Create a Stripe PaymentIntent for ``user``.

    Args:
        user: Paying user, recorded in the intent metadata
        amount: Positive integer in the smallest currency unit (cents)
        currency: ISO currency code, defaults to STRIPE_DEFAULT_CURRENCY

    Returns:
        str: The client secret used by the frontend to confirm the payment

    Raises:
        PaymentsNotConfigured: If STRIPE_SECRET_KEY is empty
        PaymentProviderError: If Stripe returns an error
    """
    secret_key = getattr(settings, 'STRIPE_SECRET_KEY', '')
    if not secret_key:
        raise PaymentsNotConfigured('Payments are not configured.')

    currency = (currency or getattr(settings, 'STRIPE_DEFAULT_CURRENCY', 'zar')).lower()
    stripe.api_key = secret_key

    try:
        intent = stripe.PaymentIntent.create(
            amount=amount,
            currency=currency,
            metadata={'user_id': str(user.pk)},
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe payment intent failed. User: {user.pk}, Error: {str(e)}")
        raise PaymentProviderError(getattr(e, 'user_message', None) or str(e)) from e

    logger.info(f"Payment intent created. User: {user.pk}, Amount: {amount} {currency}")
    return intent.client_secret
