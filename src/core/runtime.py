"""Immutable payment configuration resolved once at startup."""

from dataclasses import dataclass

from src.core.config import Settings
from src.core.mural import MuralClient
from src.schemas.mural import (
    BusinessRecipientInfo,
    CopDetails,
    FiatPayoutDetails,
    PhysicalAddress,
)


@dataclass(frozen=True)
class PayoutRecipient:
    """Fixed fiat recipient every payout is addressed to."""

    bank_name: str
    bank_account_owner: str
    phone_number: str
    account_type: str
    bank_account_number: str
    document_number: str
    document_type: str
    name: str
    email: str
    address1: str
    country: str
    state: str
    city: str
    zip: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "PayoutRecipient":
        return cls(
            bank_name=settings.payout_bank_name,
            bank_account_owner=settings.payout_bank_account_owner,
            phone_number=settings.payout_phone_number,
            account_type=settings.payout_account_type,
            bank_account_number=settings.payout_bank_account_number,
            document_number=settings.payout_document_number,
            document_type=settings.payout_document_type,
            name=settings.payout_recipient_name,
            email=settings.payout_recipient_email,
            address1=settings.payout_address_line1,
            country=settings.payout_address_country,
            state=settings.payout_address_state,
            city=settings.payout_address_city,
            zip=settings.payout_address_zip,
        )

    def payout_details(self) -> FiatPayoutDetails:
        return FiatPayoutDetails(
            bank_name=self.bank_name,
            bank_account_owner=self.bank_account_owner,
            fiat_and_rail_details=CopDetails(
                phone_number=self.phone_number,
                account_type=self.account_type,
                bank_account_number=self.bank_account_number,
                document_number=self.document_number,
                document_type=self.document_type,
            ),
        )

    def recipient_info(self) -> BusinessRecipientInfo:
        return BusinessRecipientInfo(
            name=self.name,
            email=self.email,
            physical_address=PhysicalAddress(
                address1=self.address1,
                country=self.country,
                state=self.state,
                city=self.city,
                zip=self.zip,
            ),
        )


@dataclass(frozen=True)
class LifecycleConfig:
    """Snapshot of everything a payment lifecycle run needs to know.

    Built after account and organization discovery and handed to every
    worker; nothing mutates it afterwards.
    """

    account_id: str
    organization_id: str
    deposit_address: str
    network: str
    stable_asset_symbol: str
    fiat_rail_code: str
    fallback_fiat_rate: float
    poll_interval_seconds: float
    watch_timeout_seconds: float
    amount_tolerance: float
    search_page_size: int
    assume_paid_on_timeout: bool
    payout_tolerance_mode: str
    recipient: PayoutRecipient
    simulation_confirm_delay_seconds: float = 8.0
    simulation_quote_delay_seconds: float = 5.0
    simulation_payout_delay_seconds: float = 5.0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        account_id: str = "",
        organization_id: str = "",
        deposit_address: str = "",
        network: str = "",
    ) -> "LifecycleConfig":
        return cls(
            account_id=account_id or settings.mural_account_id,
            organization_id=organization_id or settings.mural_organization_id,
            deposit_address=deposit_address or settings.mock_deposit_address,
            network=network or settings.stable_asset_network,
            stable_asset_symbol=settings.stable_asset_symbol,
            fiat_rail_code=settings.fiat_rail_code,
            fallback_fiat_rate=settings.fallback_fiat_rate,
            poll_interval_seconds=settings.deposit_poll_interval_seconds,
            watch_timeout_seconds=settings.deposit_watch_timeout_seconds,
            amount_tolerance=settings.deposit_amount_tolerance,
            search_page_size=settings.deposit_search_page_size,
            assume_paid_on_timeout=settings.deposit_assume_paid_on_timeout,
            payout_tolerance_mode=settings.payout_tolerance_mode,
            recipient=PayoutRecipient.from_settings(settings),
            simulation_confirm_delay_seconds=settings.simulation_confirm_delay_seconds,
            simulation_quote_delay_seconds=settings.simulation_quote_delay_seconds,
            simulation_payout_delay_seconds=settings.simulation_payout_delay_seconds,
        )


@dataclass(frozen=True)
class PaymentRuntime:
    """Provider client plus configuration shared by routes and workers."""

    config: LifecycleConfig
    mural: MuralClient | None = None


_payment_runtime: PaymentRuntime | None = None


def set_payment_runtime(runtime: PaymentRuntime | None) -> None:
    """Install the runtime built during application startup."""
    global _payment_runtime
    _payment_runtime = runtime


def get_payment_runtime() -> PaymentRuntime:
    """Get the installed payment runtime.

    Raises:
        RuntimeError: If called before application startup completed.
    """
    if _payment_runtime is None:
        raise RuntimeError("Payment runtime has not been initialized")
    return _payment_runtime
