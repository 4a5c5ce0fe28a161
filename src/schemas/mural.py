"""Pydantic models for the Mural Pay API wire format.

Field names are snake_case in Python and camelCase on the wire. Only the
subset of each provider schema this service reads or writes is modelled;
unknown fields are ignored.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MuralModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TokenAmount(MuralModel):
    """Token amount and symbol pair, reused across several endpoints."""

    token_amount: float = Field(default=0.0, description="Amount in token units")
    token_symbol: str = Field(default="", description="Token symbol, e.g. USDC")


class WalletDetails(MuralModel):
    """On-chain wallet that receives deposits for an account."""

    wallet_address: str = ""
    blockchain: str = ""


class AccountDetails(MuralModel):
    """Balances and deposit wallet of an account."""

    balances: list[TokenAmount] = Field(default_factory=list)
    wallet_details: WalletDetails | None = None


class Account(MuralModel):
    """Settlement account owned by the organization."""

    id: str
    name: str = ""
    description: str | None = None
    is_api_enabled: bool = False
    status: str = ""
    account_details: AccountDetails | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Organization(MuralModel):
    """Organization visible to the API key."""

    id: str
    name: str = ""


class OrganizationSearchResponse(MuralModel):
    """First page of an organization search."""

    count: int = 0
    next_id: str | None = None
    organizations: list[Organization] = Field(default_factory=list)


class Transaction(MuralModel):
    """Account transaction as returned by the transaction search endpoint."""

    id: str
    memo: str | None = None
    direction: str | None = Field(default=None, description="DEPOSIT or PAYOUT")
    executed_at: datetime | None = Field(default=None, description="Settlement time, absent while pending")
    token_amount: TokenAmount = Field(default_factory=TokenAmount)


class TransactionSearchResponse(MuralModel):
    """First page of a transaction search, with the next-page cursor."""

    count: int = 0
    next_id: str | None = Field(default=None, description="Cursor for the next page")
    transactions: list[Transaction] = Field(default_factory=list)


class FiatAmount(MuralModel):
    """Fiat amount with its ISO currency code."""

    amount: float = 0.0
    currency_code: str = ""


class TokenToFiatQuote(MuralModel):
    """Single result of the token-to-fiat fee quote endpoint."""

    estimated_fiat_amount: FiatAmount = Field(default_factory=FiatAmount)


class CopDetails(MuralModel):
    """Colombian bank rail details for a COP payout."""

    type: str = "cop"
    symbol: str = "COP"
    phone_number: str
    account_type: str
    bank_account_number: str
    document_number: str
    document_type: str


class FiatPayoutDetails(MuralModel):
    """Payout destination: a bank account on a fiat rail."""

    type: str = "fiat"
    bank_name: str
    bank_account_owner: str
    fiat_and_rail_details: CopDetails


class PhysicalAddress(MuralModel):
    """Postal address of a payout recipient."""

    address1: str
    address2: str | None = None
    country: str
    state: str
    city: str
    zip: str


class BusinessRecipientInfo(MuralModel):
    """Recipient identity for a business payout."""

    type: str = "business"
    name: str
    email: str
    physical_address: PhysicalAddress


class PayoutInfo(MuralModel):
    """One payout line: amount, destination and recipient."""

    amount: TokenAmount
    payout_details: FiatPayoutDetails
    recipient_info: BusinessRecipientInfo


class CreatePayoutRequest(MuralModel):
    """Body of the payout request creation call."""

    source_account_id: str
    memo: str | None = None
    payouts: list[PayoutInfo]


class PayoutRequest(MuralModel):
    """Payout request as returned by create, execute and get calls."""

    id: str
    status: str = ""
    source_account_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Webhook(MuralModel):
    """Webhook registration for the organization."""

    id: str
    url: str = ""
    status: str = ""
    events: list[str] = Field(default_factory=list)


class WebhookEventPayload(MuralModel):
    """Payload of a balance activity webhook event."""

    type: str = ""
    account_id: str = ""
    token_amount: TokenAmount = Field(default_factory=TokenAmount)


class WebhookEvent(MuralModel):
    """Envelope of an inbound webhook delivery."""

    event_category: str = ""
    payload: WebhookEventPayload = Field(default_factory=WebhookEventPayload)
