"""Shared test fixtures."""

import asyncio
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest
from solders.keypair import Keypair

from lossy_mint.adapters.asset_fetcher import AssetFetcher
from lossy_mint.adapters.metaplex_minting_client import MintingClient
from lossy_mint.adapters.pinata_client import PinningClient
from lossy_mint.adapters.solana_chain_client import ChainClient
from lossy_mint.config import Settings, SweepPolicy
from lossy_mint.containers import AppContainer
from lossy_mint.domain.chain import CreatorShare, MintResult, SweepResult
from lossy_mint.domain.sessions import Session
from lossy_mint.domain.uploads import PinnedContent
from lossy_mint.errors import SessionNotFound
from lossy_mint.services.collection import CollectionProfile, CollectionService
from lossy_mint.services.minting import NftMintingService, NftProfile, build_creators
from lossy_mint.services.recovery import RecoveryService
from lossy_mint.services.sessions import SessionService, SessionStore
from lossy_mint.services.treasury import TreasuryService
from lossy_mint.services.uploads import UploadService
from lossy_mint.services.wallets import WalletDeriver

TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
COLLECTION_MINT = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


@dataclass
class InMemorySessionStore(SessionStore):
    """In-memory session store for tests."""

    counter: int = 0
    sessions: dict[str, Session] = field(default_factory=dict)
    ttls: dict[str, int] = field(default_factory=dict)
    locks: dict[str, str] = field(default_factory=dict)
    writes: list[Session] = field(default_factory=list)

    async def next_session_index(self) -> int:
        self.counter += 1
        return self.counter

    async def current_session_index(self) -> int:
        return self.counter

    async def create_session(self, session: Session, ttl_seconds: int) -> None:
        self.sessions[session.session_id] = session
        self.ttls[session.session_id] = ttl_seconds

    async def get_session(self, session_id: str) -> Session | None:
        return self.sessions.get(session_id)

    async def update_session(
        self, session: Session, ttl_seconds: int | None = None
    ) -> None:
        if session.session_id not in self.sessions:
            raise SessionNotFound(session.session_id)
        self.sessions[session.session_id] = session
        if ttl_seconds is not None:
            self.ttls[session.session_id] = ttl_seconds
        self.writes.append(session)

    async def acquire_lock(self, name: str, ttl_seconds: int) -> str | None:
        if name in self.locks:
            return None
        token = secrets.token_hex(8)
        self.locks[name] = token
        return token

    async def release_lock(self, name: str, token: str) -> None:
        if self.locks.get(name) == token:
            del self.locks[name]


@dataclass
class ExpiringSessionStore(InMemorySessionStore):
    """In-memory store whose sessions and locks expire like Redis keys."""

    clock: Callable[[], float] = time.monotonic
    deadlines: dict[str, float] = field(default_factory=dict)
    lock_ttls: list[int] = field(default_factory=list)

    def _expire(self) -> None:
        now = self.clock()
        for key, deadline in list(self.deadlines.items()):
            if deadline <= now:
                self.sessions.pop(key, None)
                self.locks.pop(key, None)
                del self.deadlines[key]

    async def create_session(self, session: Session, ttl_seconds: int) -> None:
        await super().create_session(session, ttl_seconds)
        self.deadlines[session.session_id] = self.clock() + ttl_seconds

    async def get_session(self, session_id: str) -> Session | None:
        self._expire()
        return await super().get_session(session_id)

    async def update_session(
        self, session: Session, ttl_seconds: int | None = None
    ) -> None:
        self._expire()
        await super().update_session(session, ttl_seconds)
        if ttl_seconds is not None:
            self.deadlines[session.session_id] = self.clock() + ttl_seconds

    async def acquire_lock(self, name: str, ttl_seconds: int) -> str | None:
        self._expire()
        token = await super().acquire_lock(name, ttl_seconds)
        if token is not None:
            self.lock_ttls.append(ttl_seconds)
            self.deadlines[name] = self.clock() + ttl_seconds
        return token

    async def release_lock(self, name: str, token: str) -> None:
        self._expire()
        await super().release_lock(name, token)
        if name not in self.locks:
            self.deadlines.pop(name, None)


@dataclass
class FakeChainClient(ChainClient):
    """Fake chain client with settable balances."""

    usdc_balances: dict[str, float] = field(default_factory=dict)
    sol_balances: dict[str, int] = field(default_factory=dict)
    sweeps: list[str] = field(default_factory=list)
    initialized: list[str] = field(default_factory=list)
    sweep_error: Exception | None = None
    balance_errors: list[Exception] = field(default_factory=list)

    async def get_usdc_balance(self, owner: str) -> float:
        if self.balance_errors:
            raise self.balance_errors.pop(0)
        return self.usdc_balances.get(owner, 0.0)

    async def get_sol_balance(self, owner: str) -> int:
        return self.sol_balances.get(owner, 0)

    async def init_token_account(self, owner: str) -> str:
        self.initialized.append(owner)
        return f"ata-{owner}"

    async def sweep(
        self, session_keypair: Keypair, include_sol: bool
    ) -> SweepResult | None:
        if self.sweep_error is not None:
            raise self.sweep_error
        owner = str(session_keypair.pubkey())
        amount = self.usdc_balances.pop(owner, 0.0)
        if amount <= 0:
            return None
        self.sweeps.append(owner)
        return SweepResult(
            signature=f"sweep-sig-{len(self.sweeps)}",
            usdc_amount=amount,
            sol_lamports=0,
        )


@dataclass
class FakePinningClient(PinningClient):
    """Fake pinning client that records uploads."""

    files: list[dict[str, object]] = field(default_factory=list)
    documents: list[dict[str, object]] = field(default_factory=list)

    async def pin_file(  # noqa: PLR0913
        self,
        filename: str,
        content: bytes,
        mime_type: str,
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinnedContent:
        self.files.append(
            {
                "filename": filename,
                "size": len(content),
                "mime_type": mime_type,
                "name": name,
                "keyvalues": keyvalues,
            }
        )
        return self._pinned()

    async def pin_json(self, document: dict[str, object], name: str) -> PinnedContent:
        self.documents.append(document)
        return self._pinned()

    def _pinned(self) -> PinnedContent:
        cid = f"bafy-test-{len(self.files) + len(self.documents)}"
        return PinnedContent(cid=cid, uri=f"https://gateway.test/ipfs/{cid}")


@dataclass
class FakeMintingClient(MintingClient):
    """Fake minting client; a mint lands at broadcast, before ``delay`` elapses."""

    calls: list[dict[str, object]] = field(default_factory=list)
    minted: dict[str, MintResult] = field(default_factory=dict)
    delay: float = 0.01
    error: Exception | None = None

    async def mint_nft(  # noqa: PLR0913
        self,
        *,
        name: str,
        symbol: str,
        uri: str,
        seller_fee_basis_points: int,
        creators: list[CreatorShare],
        collection_mint: str | None = None,
        is_collection: bool = False,
        mint: Keypair | None = None,
    ) -> MintResult:
        if self.error is not None:
            raise self.error
        index = len(self.calls) + 1
        mint_address = str(mint.pubkey()) if mint is not None else f"Mint{index}"
        self.calls.append(
            {
                "name": name,
                "symbol": symbol,
                "uri": uri,
                "seller_fee_basis_points": seller_fee_basis_points,
                "creators": creators,
                "collection_mint": collection_mint,
                "is_collection": is_collection,
                "mint": mint_address,
            }
        )
        result = MintResult(mint_address=mint_address, signature=f"mint-sig-{index}")
        self.minted[mint_address] = result
        await asyncio.sleep(self.delay)
        return result

    async def find_mint(self, mint_address: str) -> MintResult | None:
        return self.minted.get(mint_address)


@dataclass
class FakeAssetFetcher(AssetFetcher):
    """Fake asset fetcher returning static bytes."""

    content: bytes = b"collection-image"
    urls: list[str] = field(default_factory=list)

    async def fetch_bytes(self, url: str) -> bytes:
        self.urls.append(url)
        return self.content


def fund(chain: FakeChainClient, address: str, amount: float) -> None:
    chain.usdc_balances[address] = amount


def build_session_service(  # noqa: PLR0913
    settings: Settings,
    wallets: WalletDeriver,
    store: InMemorySessionStore,
    chain: FakeChainClient,
    pinning: FakePinningClient,
    minting: FakeMintingClient,
    sweep_policy: SweepPolicy | None = None,
) -> SessionService:
    nft_minting = NftMintingService(
        pinning=pinning,
        minting=minting,
        profile=NftProfile(
            name_prefix=settings.nft_name_prefix,
            symbol=settings.collection_symbol,
            description=settings.nft_description,
            seller_fee_basis_points=settings.seller_fee_basis_points,
            creators=build_creators(
                settings.creator_address, wallets.master_address(), False
            ),
            collection_mint=settings.collection_mint,
        ),
        pin_timeout=1.0,
        confirm_timeout=1.0,
    )
    return SessionService(
        store=store,
        wallets=wallets,
        chain=chain,
        minting=nft_minting,
        required_usdc=settings.required_usdc,
        store_timeout=1.0,
        rpc_timeout=1.0,
        confirm_timeout=1.0,
        balance_read_retries=1,
        sweep_policy=sweep_policy or settings.sweep_policy,
        clock=lambda: 1_700_000_000_000,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        solana_rpc_url="http://localhost:8899",
        pinata_jwt="pinata-jwt",
        master_wallet_seed=TEST_MNEMONIC,
        recover_secret="recover-secret",
        redis_url="redis://localhost:6379/0",
        collection_mint=COLLECTION_MINT,
        collection_secret="collection-secret",
        enable_test_mint=True,
        environment="test",
    )


@pytest.fixture
def wallets(settings: Settings) -> WalletDeriver:
    return WalletDeriver(settings.master_wallet_seed)


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def chain_client() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def pinning_client() -> FakePinningClient:
    return FakePinningClient()


@pytest.fixture
def minting_client() -> FakeMintingClient:
    return FakeMintingClient()


@pytest.fixture
def session_service(  # noqa: PLR0913
    settings: Settings,
    wallets: WalletDeriver,
    session_store: InMemorySessionStore,
    chain_client: FakeChainClient,
    pinning_client: FakePinningClient,
    minting_client: FakeMintingClient,
) -> SessionService:
    return build_session_service(
        settings, wallets, session_store, chain_client, pinning_client, minting_client
    )


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    wallets: WalletDeriver,
    session_service: SessionService,
    chain_client: FakeChainClient,
    pinning_client: FakePinningClient,
    minting_client: FakeMintingClient,
) -> AppContainer:
    collection_service = CollectionService(
        wallets=wallets,
        chain=chain_client,
        pinning=pinning_client,
        minting=minting_client,
        fetcher=FakeAssetFetcher(),
        profile=CollectionProfile(
            name=settings.collection_name,
            symbol=settings.collection_symbol,
            description=settings.collection_description,
            image_url=settings.collection_image_url,
            seller_fee_basis_points=settings.seller_fee_basis_points,
            creators=(CreatorShare(address=settings.creator_address, share=100),),
        ),
        rpc_timeout=1.0,
        pin_timeout=1.0,
        confirm_timeout=1.0,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        wallets=wallets,
        session_service=session_service,
        upload_service=UploadService(
            pinning=pinning_client,
            max_upload_bytes=1024,
            timeout=1.0,
            clock=lambda: 1_700_000_000_000,
        ),
        recovery_service=RecoveryService(sessions=session_service, scan_window=20),
        treasury_service=TreasuryService(
            wallets=wallets, chain=chain_client, rpc_timeout=1.0
        ),
        collection_service=collection_service,
        close_resources=close_resources,
    )
