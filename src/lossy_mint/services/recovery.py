"""Operator recovery for sessions whose payment landed but never minted."""

import asyncio
import logging
from dataclasses import dataclass

from lossy_mint.domain.chain import WalletBalance
from lossy_mint.domain.sessions import SessionStatus
from lossy_mint.errors import AlreadyFinalized, InvalidRequest
from lossy_mint.services.resilience import call_upstream
from lossy_mint.services.sessions import (
    STATUS_INSUFFICIENT,
    SessionService,
    covers_requirement,
)

STATUS_ALREADY_MINTED = "already minted"

logger = logging.getLogger(__name__)


@dataclass
class RecoveryService:
    """Scans derived wallets and re-triggers stuck sessions."""

    sessions: SessionService
    scan_window: int = 20

    async def scan(self) -> dict[str, object]:
        """Report recent derived wallets that still hold USDC."""
        store = self.sessions.store
        total = await call_upstream(
            "store",
            store.current_session_index,
            timeout=self.sessions.store_timeout,
            retries=1,
        )
        start = max(1, total - self.scan_window)
        indices = list(range(start, total + 1)) if total >= 1 else []
        balances = await asyncio.gather(
            *(self._wallet_balance(index) for index in indices)
        )
        funded = [wallet for wallet in balances if wallet.balance > 0]
        logger.info(
            "Recovery scan complete",
            extra={"total": total, "scanned": len(indices), "funded": len(funded)},
        )
        return {
            "scanned": total,
            "walletsWithUsdc": [wallet.to_dict() for wallet in funded],
        }

    async def recover(self, session_id: str) -> dict[str, object]:
        """Run the lifecycle for one session on the operator's behalf."""
        session = await self.sessions.get_session(session_id)
        if session.status is SessionStatus.MINTED:
            return {
                "status": STATUS_ALREADY_MINTED,
                "mintAddress": session.mint_address,
            }
        if session.status is SessionStatus.PENDING:
            balance = await self.sessions.read_balance(session.payment_address)
            if not covers_requirement(balance, session.required_usdc):
                return {
                    "status": STATUS_INSUFFICIENT,
                    "balance": balance,
                    "required": session.required_usdc,
                    "address": session.payment_address,
                }
        logger.info("Recovery triggered", extra={"session_id": session_id})
        result = await self.sessions.advance(session_id)
        return {"triggered": True, "result": result.to_dict()}

    async def retry_sweep(self, session_id: str) -> dict[str, object]:
        """Sweep a minted session whose post-mint sweep failed."""
        session = await self.sessions.get_session(session_id)
        if session.status is not SessionStatus.MINTED:
            raise InvalidRequest(
                f"Session {session_id} is {session.status.value}; sweep after minting"
            )
        if session.sweep_signature:
            raise AlreadyFinalized(f"Session {session_id} was already swept")
        updated = await self.sessions.sweep(session)
        return {
            "sessionId": session_id,
            "swept": updated.sweep_signature is not None,
            "sweepSignature": updated.sweep_signature,
        }

    async def _wallet_balance(self, index: int) -> WalletBalance:
        address = self.sessions.wallets.payment_address(index)
        balance = await self.sessions.read_balance(address)
        return WalletBalance(index=index, address=address, balance=balance)
