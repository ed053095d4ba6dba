"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from lossy_mint.adapters.asset_fetcher import HttpxAssetFetcher
from lossy_mint.adapters.metaplex_minting_client import MetaplexMintingClient
from lossy_mint.adapters.pinata_client import HttpxPinataClient
from lossy_mint.adapters.redis_session_store import RedisSessionStore
from lossy_mint.adapters.solana_chain_client import SolanaChainClient
from lossy_mint.adapters.transaction_sender import TransactionSender
from lossy_mint.config import Settings
from lossy_mint.services.collection import CollectionProfile, CollectionService
from lossy_mint.services.minting import NftMintingService, NftProfile, build_creators
from lossy_mint.services.recovery import RecoveryService
from lossy_mint.services.sessions import SessionService
from lossy_mint.services.treasury import TreasuryService
from lossy_mint.services.uploads import UploadService
from lossy_mint.services.wallets import WalletDeriver


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    wallets: WalletDeriver
    session_service: SessionService
    upload_service: UploadService
    recovery_service: RecoveryService
    treasury_service: TreasuryService
    collection_service: CollectionService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    wallets = WalletDeriver(resolved_settings.master_wallet_seed)
    master = wallets.master_keypair()
    creators = build_creators(
        resolved_settings.creator_address,
        wallets.master_address(),
        resolved_settings.verify_creators,
    )

    rpc = AsyncClient(
        resolved_settings.solana_rpc_url,
        commitment=Confirmed,
        timeout=resolved_settings.rpc_timeout_seconds,
    )
    sender = TransactionSender(rpc)
    chain_client = SolanaChainClient(
        rpc=rpc,
        sender=sender,
        payer=master,
        usdc_mint=Pubkey.from_string(resolved_settings.usdc_mint),
    )
    minting_client = MetaplexMintingClient(rpc=rpc, sender=sender, authority=master)
    pinata_client = HttpxPinataClient.create(
        jwt=resolved_settings.pinata_jwt,
        api_url=resolved_settings.pinata_api_url,
        gateway_base=resolved_settings.pinata_gateway_url,
        timeout=resolved_settings.upload_timeout_seconds,
    )
    asset_fetcher = HttpxAssetFetcher.create()
    store = RedisSessionStore.create(
        resolved_settings.redis_url, resolved_settings.session_counter_key
    )

    nft_minting = NftMintingService(
        pinning=pinata_client,
        minting=minting_client,
        profile=NftProfile(
            name_prefix=resolved_settings.nft_name_prefix,
            symbol=resolved_settings.collection_symbol,
            description=resolved_settings.nft_description,
            seller_fee_basis_points=resolved_settings.seller_fee_basis_points,
            creators=creators,
            collection_mint=resolved_settings.collection_mint,
        ),
        pin_timeout=resolved_settings.upload_timeout_seconds,
        confirm_timeout=resolved_settings.confirm_timeout_seconds,
        rpc_timeout=resolved_settings.rpc_timeout_seconds,
    )
    session_service = SessionService(
        store=store,
        wallets=wallets,
        chain=chain_client,
        minting=nft_minting,
        required_usdc=resolved_settings.required_usdc,
        session_ttl_seconds=resolved_settings.session_ttl_seconds,
        paid_session_ttl_seconds=resolved_settings.paid_session_ttl_seconds,
        lock_ttl_seconds=resolved_settings.mint_lock_ttl_seconds,
        rpc_timeout=resolved_settings.rpc_timeout_seconds,
        confirm_timeout=resolved_settings.confirm_timeout_seconds,
        balance_read_retries=resolved_settings.balance_read_retries,
        sweep_policy=resolved_settings.sweep_policy,
        sweep_sol=resolved_settings.sweep_sol,
        init_payment_token_account=resolved_settings.init_payment_token_account,
    )
    upload_service = UploadService(
        pinning=pinata_client,
        max_upload_bytes=resolved_settings.max_upload_bytes,
        timeout=resolved_settings.upload_timeout_seconds,
    )
    recovery_service = RecoveryService(
        sessions=session_service, scan_window=resolved_settings.scan_window
    )
    treasury_service = TreasuryService(
        wallets=wallets,
        chain=chain_client,
        min_master_sol=resolved_settings.min_master_sol,
        rpc_timeout=resolved_settings.rpc_timeout_seconds,
    )
    collection_service = CollectionService(
        wallets=wallets,
        chain=chain_client,
        pinning=pinata_client,
        minting=minting_client,
        fetcher=asset_fetcher,
        profile=CollectionProfile(
            name=resolved_settings.collection_name,
            symbol=resolved_settings.collection_symbol,
            description=resolved_settings.collection_description,
            image_url=resolved_settings.collection_image_url,
            seller_fee_basis_points=resolved_settings.seller_fee_basis_points,
            creators=creators,
        ),
        min_collection_sol=resolved_settings.min_collection_sol,
        rpc_timeout=resolved_settings.rpc_timeout_seconds,
        pin_timeout=resolved_settings.upload_timeout_seconds,
        confirm_timeout=resolved_settings.confirm_timeout_seconds,
    )

    async def close_resources() -> None:
        await pinata_client.close()
        await asset_fetcher.close()
        await store.close()
        await chain_client.close()

    return AppContainer(
        settings=resolved_settings,
        wallets=wallets,
        session_service=session_service,
        upload_service=upload_service,
        recovery_service=recovery_service,
        treasury_service=treasury_service,
        collection_service=collection_service,
        close_resources=close_resources,
    )
