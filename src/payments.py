"""
Featured-listing payments (Stripe).

Reserved interface only. Every operation logs its input and returns a
PaymentNotImplemented result; nothing is charged and no network call is
made until the Stripe integration lands.
"""

from dataclasses import asdict, dataclass
from typing import Union

from utils.logger import get_logger

logger = get_logger("payments")

NOT_IMPLEMENTED_MESSAGE = "Stripe integration not yet implemented"


@dataclass(frozen=True)
class StripeConfig:
    publishable_key: str
    secret_key: str


@dataclass(frozen=True)
class FeaturedListingPayment:
    listing_id: str
    duration: int  # days
    amount: int  # cents


class PaymentError(Exception):
    """Raised by PaymentNotImplemented.unwrap()."""


@dataclass(frozen=True)
class PaymentNotImplemented:
    message: str = NOT_IMPLEMENTED_MESSAGE
    code: str = "not_implemented"

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise PaymentError(self.message)


# Only one variant exists until Stripe is wired up
PaymentResult = Union[PaymentNotImplemented]


def create_featured_listing_payment(payment: FeaturedListingPayment) -> PaymentResult:
    logger.info("payments.create_featured_listing_payment %s", asdict(payment))
    return PaymentNotImplemented()


def confirm_payment(payment_intent_id: str) -> PaymentResult:
    logger.info("payments.confirm_payment payment_intent_id=%s", payment_intent_id)
    return PaymentNotImplemented()


def create_checkout_session(payment: FeaturedListingPayment) -> PaymentResult:
    logger.info("payments.create_checkout_session %s", asdict(payment))
    return PaymentNotImplemented()
