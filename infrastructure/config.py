"""Runtime configuration read from the environment"""
import os
from decimal import Decimal

from dotenv import load_dotenv

from domain.value_objects import CancellationPolicy

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")

CANCELLATION_FULL_REFUND_DAYS = int(os.getenv("CANCELLATION_FULL_REFUND_DAYS", "7"))
CANCELLATION_PARTIAL_REFUND_DAYS = int(os.getenv("CANCELLATION_PARTIAL_REFUND_DAYS", "3"))
CANCELLATION_PARTIAL_REFUND_PERCENTAGE = Decimal(os.getenv("CANCELLATION_PARTIAL_REFUND_PERCENTAGE", "50"))


def default_cancellation_policy() -> CancellationPolicy:
    """Cancellation tiers for guest-initiated cancellations"""
    return CancellationPolicy(
        full_refund_days=CANCELLATION_FULL_REFUND_DAYS,
        partial_refund_days=CANCELLATION_PARTIAL_REFUND_DAYS,
        partial_refund_percentage=CANCELLATION_PARTIAL_REFUND_PERCENTAGE
    )
