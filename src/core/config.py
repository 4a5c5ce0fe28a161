"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="stablecoin-checkout", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")

    # Auth
    auth_jwt_secret: str = Field(..., description="HMAC secret used to sign login tokens")
    auth_token_ttl_minutes: int = Field(default=720, description="Login token lifetime in minutes")
    guest_username: str = Field(default="guest", description="Storefront login username")
    guest_password: str = Field(default="guest", description="Storefront login password")
    admin_username: str = Field(default="admin", description="Admin login username")
    admin_password: str = Field(default="admin", description="Admin login password")

    # Mural Pay
    mural_base_url: str = Field(default="https://api-staging.muralpay.com", description="Mural API base URL")
    mural_api_key: str = Field(default="", description="Mural API key. Empty disables the provider and enables simulation")
    mural_transfer_key: str = Field(default="", description="Mural transfer API key, required to execute payouts")
    mural_account_id: str = Field(default="", description="Settlement account ID. Discovered at startup when empty")
    mural_organization_id: str = Field(default="", description="On-behalf-of organization ID. Discovered at startup when empty")
    mural_account_name: str = Field(default="Main Account", description="Preferred account name during discovery")
    mural_webhook_public_key: str = Field(default="", description="PEM public key for webhook signatures. Empty skips verification")
    mural_request_timeout_seconds: float = Field(default=15.0, description="Per-request timeout for Mural calls")
    use_webhooks: bool = Field(default=False, description="Register the balance activity webhook at startup")
    backend_base_url: str = Field(default="", description="Public base URL of this backend, used for webhook registration")

    # Payment pair
    stable_asset_symbol: str = Field(default="USDC", description="Stable asset customers pay with")
    stable_asset_network: str = Field(default="POLYGON", description="Network the stable asset is sent on")
    mock_deposit_address: str = Field(
        default="0xDEMOUSDCADDRESSONPOLYGON000000000",
        description="Deposit address shown when none can be resolved from the provider",
    )
    fiat_rail_code: str = Field(default="cop", description="Fiat and rail code used for quotes")
    fallback_fiat_rate: float = Field(default=4000.0, description="Fiat per stable unit when no quote is available")

    # Payment lifecycle
    deposit_poll_interval_seconds: float = Field(default=5.0, description="Delay between transaction searches")
    deposit_watch_timeout_seconds: float = Field(default=120.0, description="Deposit watch window")
    deposit_amount_tolerance: float = Field(default=0.000001, description="Absolute tolerance for deposit amounts")
    deposit_search_page_size: int = Field(default=50, description="Transactions requested per search")
    deposit_assume_paid_on_timeout: bool = Field(
        default=True,
        description="Mark orders paid when the watch window ends without a matching deposit",
    )
    payout_tolerance_mode: str = Field(default="FLEXIBLE", description="Exchange rate tolerance mode for payout execution")
    lifecycle_worker_count: int = Field(default=4, ge=1, description="Concurrent payment lifecycle workers")
    lifecycle_recover_on_startup: bool = Field(default=True, description="Re-enqueue unfinished orders at startup")
    simulation_confirm_delay_seconds: float = Field(default=8.0, description="Simulated on-chain confirmation delay")
    simulation_quote_delay_seconds: float = Field(default=5.0, description="Simulated conversion delay")
    simulation_payout_delay_seconds: float = Field(default=5.0, description="Simulated withdrawal delay")

    # Payout recipient
    payout_bank_name: str = Field(default="Bancolombia", description="Recipient bank name")
    payout_bank_account_owner: str = Field(default="Demo Recipient S.A.S.", description="Recipient bank account owner")
    payout_phone_number: str = Field(default="+573001234567", description="Recipient phone number")
    payout_account_type: str = Field(default="CHECKING", description="CHECKING or SAVINGS")
    payout_bank_account_number: str = Field(default="1234567890", description="Recipient bank account number")
    payout_document_number: str = Field(default="9001234568", description="Recipient document number")
    payout_document_type: str = Field(default="RUC", description="Recipient document type")
    payout_recipient_name: str = Field(default="Demo Recipient S.A.S.", description="Business recipient name")
    payout_recipient_email: str = Field(default="demo-recipient@example.com", description="Business recipient email")
    payout_address_line1: str = Field(default="Calle 123 #45-67", description="Recipient street address")
    payout_address_country: str = Field(default="CO", description="Recipient country code")
    payout_address_state: str = Field(default="ANT", description="Recipient state code")
    payout_address_city: str = Field(default="Medellín", description="Recipient city")
    payout_address_zip: str = Field(default="050021", description="Recipient postal code")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def mural_enabled(self) -> bool:
        """Check if the Mural provider is configured."""
        return bool(self.mural_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
