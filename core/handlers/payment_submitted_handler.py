"""
Handler for PaymentSubmitted events.

Records the acknowledged payment in the application log with its reference,
the token support staff search for when a customer disputes a charge.
"""

import logging
from typing import Callable

from core.events import PaymentSubmitted

logger = logging.getLogger(__name__)


def handle_payment_submitted() -> Callable:
    """Factory that returns a PaymentSubmitted handler."""

    def handler(event: PaymentSubmitted):
        payment = event.payment
        logger.info(
            f"Payment {payment.reference} acknowledged: {payment.amount} "
            f"{payment.payment_method} for invoice {payment.invoice_id} "
            f"(customer {payment.customer_id}, job {event.job_id})"
        )

    return handler
