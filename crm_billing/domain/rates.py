"""Versioned billing rates: platform fees and the distributable share"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Optional

from crm_billing.domain.exceptions import UnknownRateCardError
from crm_billing.domain.models import BillingPlatform


@dataclass(frozen=True)
class RateCard:
    """
    Rates applied to every installment.

    A new card gets a new version instead of editing an existing one, so past
    dispatches can be recomputed with the rates in force at the time.
    """

    version: str
    platform_fee_rates: Mapping[BillingPlatform, Decimal]
    distributable_share: Decimal  # the rest is retained by the business

    def platform_rate(self, platform: Optional[BillingPlatform]) -> Decimal:
        # Clients created before platforms were tracked bill through Mollie
        if platform is None:
            platform = BillingPlatform.MOLLIE
        return self.platform_fee_rates.get(platform, Decimal("0"))


RATE_CARDS: Dict[str, RateCard] = {
    "2025-01": RateCard(
        version="2025-01",
        platform_fee_rates={
            BillingPlatform.MOLLIE: Decimal("0.02"),
            BillingPlatform.REVOLUT: Decimal("0.02"),
            BillingPlatform.GOCARDLESS: Decimal("0.01"),
        },
        distributable_share=Decimal("0.70"),
    ),
}

DEFAULT_RATE_CARD = RATE_CARDS["2025-01"]


def get_rate_card(version: str) -> RateCard:
    try:
        return RATE_CARDS[version]
    except KeyError:
        raise UnknownRateCardError(f"No rate card for version {version!r}") from None
