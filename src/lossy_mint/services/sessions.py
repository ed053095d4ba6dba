"""Session lifecycle: checkout, payment detection, mint and sweep."""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from lossy_mint.config import SweepPolicy
from lossy_mint.domain.chain import MintResult
from lossy_mint.domain.sessions import (
    OutputType,
    Session,
    SessionMetadata,
    SessionStatus,
    build_session_id,
    mint_lock_key,
)
from lossy_mint.errors import MintingAppError, SessionNotFound
from lossy_mint.services.resilience import call_upstream
from lossy_mint.services.wallets import WalletDeriver

if TYPE_CHECKING:
    from lossy_mint.adapters.solana_chain_client import ChainClient
    from lossy_mint.services.minting import NftMintingService

USDC_DECIMALS = 6

STATUS_INSUFFICIENT = "insufficient balance"
STATUS_PROCESSING = "processing"
STATUS_MINTED = SessionStatus.MINTED.value

# Backoff sleeps of the retried reads made under the mint lock.
_LOCK_RETRY_SLACK_SECONDS = 1.0

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Persistence interface for minting sessions."""

    async def next_session_index(self) -> int:
        """Atomically allocate the next session index."""

    async def current_session_index(self) -> int:
        """Return the most recently allocated session index."""

    async def create_session(self, session: Session, ttl_seconds: int) -> None:
        """Persist a new session with an expiry."""

    async def get_session(self, session_id: str) -> Session | None:
        """Return a session by id, if present."""

    async def update_session(
        self, session: Session, ttl_seconds: int | None = None
    ) -> None:
        """Overwrite an existing session.

        The expiry is kept unless ``ttl_seconds`` is given, which resets it.
        """

    async def acquire_lock(self, name: str, ttl_seconds: int) -> str | None:
        """Take an exclusive lock; return its token or None when held."""

    async def release_lock(self, name: str, token: str) -> None:
        """Release a lock previously acquired with ``token``."""


@dataclass(frozen=True)
class PollResult:
    """Outcome of one lifecycle invocation."""

    status: str
    session_id: str
    mint_address: str | None = None
    mint_signature: str | None = None
    sweep_signature: str | None = None
    balance: float | None = None
    required: float | None = None
    address: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "status": self.status,
            "sessionId": self.session_id,
        }
        optional = {
            "mintAddress": self.mint_address,
            "mintSignature": self.mint_signature,
            "sweepSignature": self.sweep_signature,
            "balance": self.balance,
            "required": self.required,
            "address": self.address,
        }
        payload.update(
            {key: value for key, value in optional.items() if value is not None}
        )
        return payload


def covers_requirement(balance: float, required: float) -> bool:
    """Compare amounts in base units so float noise never flips the result."""
    scale = 10**USDC_DECIMALS
    return round(balance * scale) >= round(required * scale)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SessionService:
    """Drives a session through pending -> paid -> minted."""

    store: SessionStore
    wallets: WalletDeriver
    chain: "ChainClient"
    minting: "NftMintingService"
    required_usdc: float
    session_ttl_seconds: int = 60 * 30
    paid_session_ttl_seconds: int = 60 * 60 * 24 * 30
    lock_ttl_seconds: int = 600
    store_timeout: float = 10.0
    rpc_timeout: float = 30.0
    confirm_timeout: float = 90.0
    balance_read_retries: int = 2
    sweep_policy: SweepPolicy = SweepPolicy.AFTER_MINT
    sweep_sol: bool = True
    init_payment_token_account: bool = False
    clock: Callable[[], int] = _now_ms

    async def create_session(
        self,
        output_type: OutputType,
        metadata: SessionMetadata,
        buyer_wallet: str | None = None,
    ) -> Session:
        """Allocate a session index, derive its payment address and persist it."""
        session_index = await call_upstream(
            "store", self.store.next_session_index, timeout=self.store_timeout
        )
        payment_address = self.wallets.payment_address(session_index)
        now = self.clock()
        session = Session(
            session_id=build_session_id(session_index, now),
            session_index=session_index,
            payment_address=payment_address,
            output_type=output_type,
            metadata=metadata,
            status=SessionStatus.PENDING,
            created_at=now,
            expires_at=now + self.session_ttl_seconds * 1000,
            required_usdc=self.required_usdc,
            buyer_wallet=buyer_wallet,
        )
        await call_upstream(
            "store",
            lambda: self.store.create_session(session, self.session_ttl_seconds),
            timeout=self.store_timeout,
        )
        if self.init_payment_token_account:
            await call_upstream(
                "solana",
                lambda: self.chain.init_token_account(payment_address),
                timeout=self.confirm_timeout,
            )
        logger.info(
            "Session created",
            extra={"session_id": session.session_id, "session_index": session_index},
        )
        return session

    async def get_session(self, session_id: str) -> Session:
        """Return a session or raise SessionNotFound."""
        session = await call_upstream(
            "store",
            lambda: self.store.get_session(session_id),
            timeout=self.store_timeout,
            retries=1,
        )
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def read_balance(self, address: str) -> float:
        """Read the USDC balance of a payment address with bounded retries."""
        return await call_upstream(
            "solana",
            lambda: self.chain.get_usdc_balance(address),
            timeout=self.rpc_timeout,
            retries=self.balance_read_retries,
        )

    async def advance(
        self, session_id: str, *, skip_payment_check: bool = False
    ) -> PollResult:
        """Report the session state, minting once payment has arrived.

        ``skip_payment_check`` exists for the non-production test harness only.
        """
        session = await self.get_session(session_id)
        if session.status is SessionStatus.MINTED:
            return minted_result(session)

        if session.status is SessionStatus.PENDING and not skip_payment_check:
            balance = await self.read_balance(session.payment_address)
            if not covers_requirement(balance, session.required_usdc):
                return PollResult(
                    status=STATUS_INSUFFICIENT,
                    session_id=session_id,
                    balance=balance,
                    required=session.required_usdc,
                    address=session.payment_address,
                )

        lock_name = mint_lock_key(session_id)
        token = await call_upstream(
            "store",
            lambda: self.store.acquire_lock(lock_name, self.mint_lock_ttl()),
            timeout=self.store_timeout,
        )
        if token is None:
            return PollResult(status=STATUS_PROCESSING, session_id=session_id)
        try:
            return await self._finalize(session_id)
        finally:
            await self._release(lock_name, token)

    async def sweep(self, session: Session) -> Session:
        """Sweep the session wallet to master and record the signature."""
        keypair = self.wallets.session_keypair(session.session_index)
        result = await call_upstream(
            "solana",
            lambda: self.chain.sweep(keypair, self.sweep_sol),
            timeout=self.confirm_timeout,
        )
        if result is None:
            logger.info(
                "Nothing to sweep", extra={"session_id": session.session_id}
            )
            return session
        updated = session.with_sweep(result.signature)
        await self._save(updated)
        logger.info(
            "Session wallet swept",
            extra={
                "session_id": session.session_id,
                "signature": result.signature,
                "usdc": result.usdc_amount,
                "lamports": result.sol_lamports,
            },
        )
        return updated

    def mint_lock_ttl(self) -> int:
        """Lock TTL that outlasts every deadline taken while the lock is held.

        Covers the re-read, up to three session writes, the existing-mint
        lookup, one sweep, the metadata pin and the mint confirmation.
        """
        held = (
            6 * self.store_timeout
            + 2 * self.minting.rpc_timeout
            + self.minting.pin_timeout
            + self.minting.confirm_timeout
            + self.confirm_timeout
            + _LOCK_RETRY_SLACK_SECONDS
        )
        return max(self.lock_ttl_seconds, math.ceil(held))

    async def _finalize(self, session_id: str) -> PollResult:
        # Re-read under the lock: another invocation may have finished first.
        session = await self.get_session(session_id)
        if session.status is SessionStatus.MINTED:
            return minted_result(session)

        mint_keypair = self.wallets.mint_keypair(session.session_index)
        mint: MintResult | None = None
        if session.status is SessionStatus.PENDING:
            session = session.advance(SessionStatus.PAID)
            await self._save(session, ttl_seconds=self.paid_session_ttl_seconds)
            logger.info("Payment confirmed", extra={"session_id": session_id})
        else:
            # Paid but not minted: an earlier attempt may have landed unconfirmed.
            mint = await self.minting.find_existing_mint(mint_keypair)
            if mint is not None:
                logger.warning(
                    "Recorded mint from an earlier unconfirmed attempt",
                    extra={"session_id": session_id, "mint": mint.mint_address},
                )

        if mint is None:
            if (
                self.sweep_policy is SweepPolicy.BEFORE_MINT
                and session.sweep_signature is None
            ):
                session = await self.sweep(session)
            mint = await self.minting.mint_session(session, mint_keypair)

        session = session.advance(
            SessionStatus.MINTED,
            mint_address=mint.mint_address,
            mint_signature=mint.signature,
        )
        await self._save(session)
        logger.info(
            "Session minted",
            extra={"session_id": session_id, "mint": mint.mint_address},
        )

        if self.sweep_policy is SweepPolicy.AFTER_MINT:
            try:
                session = await self.sweep(session)
            except MintingAppError:
                logger.warning(
                    "Sweep failed after mint; funds stay in the session wallet",
                    extra={"session_id": session_id},
                    exc_info=True,
                )
        return minted_result(session)

    async def _save(self, session: Session, ttl_seconds: int | None = None) -> None:
        await call_upstream(
            "store",
            lambda: self.store.update_session(session, ttl_seconds),
            timeout=self.store_timeout,
        )

    async def _release(self, lock_name: str, token: str) -> None:
        try:
            await call_upstream(
                "store",
                lambda: self.store.release_lock(lock_name, token),
                timeout=self.store_timeout,
            )
        except MintingAppError:
            logger.exception(
                "Failed to release mint lock; it expires on its own",
                extra={"lock": lock_name},
            )


def minted_result(session: Session) -> PollResult:
    return PollResult(
        status=STATUS_MINTED,
        session_id=session.session_id,
        mint_address=session.mint_address,
        mint_signature=session.mint_signature,
        sweep_signature=session.sweep_signature,
    )
