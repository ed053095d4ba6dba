"""Solana RPC client for balances, token accounts and fund sweeps."""

import logging
from dataclasses import dataclass
from typing import Protocol

from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from spl.token.instructions import (
    CloseAccountParams,
    TransferCheckedParams,
    close_account,
    transfer_checked,
)

from lossy_mint.adapters.token_metadata import (
    TOKEN_PROGRAM_ID,
    build_create_ata_idempotent_ix,
    derive_ata,
)
from lossy_mint.adapters.transaction_sender import TransactionSender
from lossy_mint.domain.chain import SweepResult

LAMPORTS_PER_SOL = 1_000_000_000

logger = logging.getLogger(__name__)


class ChainClient(Protocol):
    """Interface for balance queries and fund movements."""

    async def get_usdc_balance(self, owner: str) -> float:
        """Return the USDC balance held by ``owner`` in ui units."""

    async def get_sol_balance(self, owner: str) -> int:
        """Return the native balance of ``owner`` in lamports."""

    async def init_token_account(self, owner: str) -> str:
        """Create the owner's USDC token account if missing; return its address."""

    async def sweep(
        self, session_keypair: Keypair, include_sol: bool
    ) -> SweepResult | None:
        """Move a session wallet's funds to the master wallet."""


@dataclass
class SolanaChainClient(ChainClient):
    """solana-py backed chain client; the master wallet pays all fees."""

    rpc: AsyncClient
    sender: TransactionSender
    payer: Keypair
    usdc_mint: Pubkey

    async def get_usdc_balance(self, owner: str) -> float:
        """Return the USDC balance of the owner's associated token account."""
        ata = derive_ata(Pubkey.from_string(owner), self.usdc_mint)
        amount = await self._token_amount(ata)
        if amount is None:
            return 0.0
        raw, decimals = amount
        return raw / 10**decimals

    async def get_sol_balance(self, owner: str) -> int:
        resp = await self.rpc.get_balance(Pubkey.from_string(owner))
        return int(resp.value)

    async def init_token_account(self, owner: str) -> str:
        owner_key = Pubkey.from_string(owner)
        ata = derive_ata(owner_key, self.usdc_mint)
        info = await self.rpc.get_account_info(ata)
        if info.value is None:
            await self.sender.send(
                self.payer,
                [
                    build_create_ata_idempotent_ix(
                        self.payer.pubkey(), owner_key, self.usdc_mint
                    )
                ],
            )
            logger.info("Initialized USDC account", extra={"owner": owner})
        return str(ata)

    async def sweep(
        self, session_keypair: Keypair, include_sol: bool
    ) -> SweepResult | None:
        """Transfer USDC (and optionally SOL) from a session wallet to master."""
        owner = session_keypair.pubkey()
        master = self.payer.pubkey()
        source = derive_ata(owner, self.usdc_mint)
        amount = await self._token_amount(source)
        lamports = 0
        if include_sol:
            lamports = int((await self.rpc.get_balance(owner)).value)

        instructions = []
        usdc_amount = 0.0
        if amount is not None:
            raw, decimals = amount
            if raw > 0:
                usdc_amount = raw / 10**decimals
                instructions.append(
                    build_create_ata_idempotent_ix(master, master, self.usdc_mint)
                )
                instructions.append(
                    transfer_checked(
                        TransferCheckedParams(
                            program_id=TOKEN_PROGRAM_ID,
                            source=source,
                            mint=self.usdc_mint,
                            dest=derive_ata(master, self.usdc_mint),
                            owner=owner,
                            amount=raw,
                            decimals=decimals,
                        )
                    )
                )
            instructions.append(
                close_account(
                    CloseAccountParams(
                        program_id=TOKEN_PROGRAM_ID,
                        account=source,
                        dest=master,
                        owner=owner,
                    )
                )
            )
        if lamports > 0:
            instructions.append(
                transfer(
                    TransferParams(
                        from_pubkey=owner, to_pubkey=master, lamports=lamports
                    )
                )
            )
        if not instructions:
            return None

        signature = await self.sender.send(
            self.payer, instructions, extra_signers=[session_keypair]
        )
        return SweepResult(
            signature=signature, usdc_amount=usdc_amount, sol_lamports=lamports
        )

    async def _token_amount(self, token_account: Pubkey) -> tuple[int, int] | None:
        info = await self.rpc.get_account_info(token_account)
        if info.value is None:
            return None
        resp = await self.rpc.get_token_account_balance(token_account)
        return int(resp.value.amount), int(resp.value.decimals)

    async def close(self) -> None:
        """Close the underlying RPC session."""
        await self.rpc.close()
