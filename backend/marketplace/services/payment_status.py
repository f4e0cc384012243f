"""Mapping from the payment gateway's status vocabulary to PaymentStatus."""

from typing import Dict, Optional

from marketplace.models_sqlalchemy.models import PaymentStatus
from marketplace.utils.logger import logger


GATEWAY_PAYMENT_STATUS_MAP: Dict[str, PaymentStatus] = {
    "pending": PaymentStatus.PENDING,
    "approved": PaymentStatus.APPROVED,
    "authorized": PaymentStatus.APPROVED,
    "in_process": PaymentStatus.IN_PROCESS,
    "in_mediation": PaymentStatus.IN_PROCESS,
    "rejected": PaymentStatus.REJECTED,
    "cancelled": PaymentStatus.CANCELLED,
    "refunded": PaymentStatus.CANCELLED,
    "charged_back": PaymentStatus.CANCELLED,
}

TERMINAL_FAILURE_STATUSES = frozenset({PaymentStatus.REJECTED, PaymentStatus.CANCELLED})


def map_payment_status(gateway_status: Optional[str]) -> PaymentStatus:
    """Return the internal status for a gateway status string.

    Unknown values fall back to PENDING. They are logged at WARNING so a new
    gateway state shows up in monitoring instead of silently parking orders.
    """
    mapped = GATEWAY_PAYMENT_STATUS_MAP.get(gateway_status or "")
    if mapped is None:
        logger.warning("Unknown gateway payment status %r, treating as PENDING", gateway_status)
        return PaymentStatus.PENDING
    return mapped
