"""Serialized submission of master-signed transactions."""

import asyncio
import logging
from dataclasses import dataclass, field

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction

logger = logging.getLogger(__name__)


@dataclass
class TransactionSender:
    """Compiles, signs, broadcasts and confirms transactions one at a time.

    Every transaction paid for by the master wallet goes through the same
    sender so concurrent sessions never race on blockhash or fee-payer state.
    """

    rpc: AsyncClient
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def send(
        self,
        payer: Keypair,
        instructions: list[Instruction],
        extra_signers: list[Keypair] | None = None,
    ) -> str:
        """Send instructions in one transaction and return its signature."""
        signers = [payer, *(extra_signers or [])]
        async with self._lock:
            blockhash_resp = await self.rpc.get_latest_blockhash(commitment=Confirmed)
            blockhash = blockhash_resp.value.blockhash
            message = MessageV0.try_compile(payer.pubkey(), instructions, [], blockhash)
            tx = VersionedTransaction(message, signers)
            resp = await self.rpc.send_raw_transaction(
                bytes(tx),
                opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed),
            )
            signature = resp.value
            await self.rpc.confirm_transaction(
                signature,
                commitment=Confirmed,
                last_valid_block_height=blockhash_resp.value.last_valid_block_height,
            )
        logger.info(
            "Transaction confirmed",
            extra={"signature": str(signature), "instructions": len(instructions)},
        )
        return str(signature)
