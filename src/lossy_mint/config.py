"""Application configuration."""

import os
from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

USDC_MAINNET_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class SweepPolicy(str, Enum):
    """When the session wallet is swept relative to the mint.

    ``after_mint`` finalizes the session even when the sweep fails (the
    balance stays recoverable through the recovery endpoints).
    ``before_mint`` only mints once the payment has been swept.
    """

    AFTER_MINT = "after_mint"
    BEFORE_MINT = "before_mint"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    solana_rpc_url: str
    pinata_jwt: str
    master_wallet_seed: str
    recover_secret: str
    redis_url: str
    collection_mint: str | None = None
    collection_secret: str | None = None

    usdc_mint: str = USDC_MAINNET_MINT
    usdc_decimals: int = 6
    required_usdc: float = 5.0
    session_ttl_seconds: int = 60 * 30
    paid_session_ttl_seconds: int = 60 * 60 * 24 * 30
    session_counter_key: str = "day-after-day:session-counter"
    mint_lock_ttl_seconds: int = 600
    scan_window: int = 20

    pinata_api_url: str = "https://api.pinata.cloud"
    pinata_gateway_url: str = "https://gateway.pinata.cloud/ipfs"
    max_upload_bytes: int = 150 * 1024 * 1024
    upload_timeout_seconds: float = 60.0
    rpc_timeout_seconds: float = 30.0
    confirm_timeout_seconds: float = 90.0
    balance_read_retries: int = 2

    sweep_policy: SweepPolicy = SweepPolicy.AFTER_MINT
    sweep_sol: bool = True
    init_payment_token_account: bool = False
    min_master_sol: float = 0.05
    min_collection_sol: float = 0.015

    collection_name: str = "Lossy"
    collection_symbol: str = "LOSSY"
    collection_description: str = (
        "Lossy. An extension of Day After Day by lampwrecked. "
        "The signal persists in spite of decay."
    )
    collection_image_url: str = (
        "https://raw.githubusercontent.com/lampwrecked/Lossy/main/lossy-collection.jpg"
    )
    nft_name_prefix: str = "Lossy"
    nft_description: str = "Day After Day by lampwrecked."
    creator_address: str = "FrstHD18pJsFRatk2hnfv4EztP1p87mJ1SL6QyXCcQju"
    seller_fee_basis_points: int = 1500
    verify_creators: bool = False
    sample_file_uri: str = (
        "https://gateway.pinata.cloud/ipfs/"
        "bafkreigb4doitxxcdanajpe73f4bl7d3pn4iejt2vbpna4freziluvixyq"
    )

    enable_test_mint: bool = False
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def is_production(settings: Settings) -> bool:
    """Return true when running in the production environment."""
    return settings.environment.strip().lower() in {"production", "prod"}


def is_test_mint_enabled(settings: Settings) -> bool:
    """The throwaway test-mint route never exists in production."""
    return settings.enable_test_mint and not is_production(settings)
