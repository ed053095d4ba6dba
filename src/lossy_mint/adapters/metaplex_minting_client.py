"""Metaplex Token Metadata minting client."""

import logging
from dataclasses import dataclass
from typing import Protocol

from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.instructions import (
    InitializeMintParams,
    MintToParams,
    initialize_mint,
    mint_to,
)

from lossy_mint.adapters.token_metadata import (
    TOKEN_PROGRAM_ID,
    build_create_ata_idempotent_ix,
    build_create_master_edition_v3_ix,
    build_create_metadata_v3_ix,
    build_verify_sized_collection_item_ix,
    derive_ata,
    encode_create_metadata_v3,
)
from lossy_mint.adapters.transaction_sender import TransactionSender
from lossy_mint.domain.chain import CreatorShare, MintResult

MINT_ACCOUNT_SIZE = 82
SIGNATURE_LOOKUP_LIMIT = 1000

logger = logging.getLogger(__name__)


class MintingClient(Protocol):
    """Interface for minting non-fungible tokens."""

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
        """Mint a single NFT owned by the master wallet."""

    async def find_mint(self, mint_address: str) -> MintResult | None:
        """Return the mint when its account already exists on-chain."""


@dataclass
class MetaplexMintingClient(MintingClient):
    """Builds the mint + metadata + master edition transaction by hand."""

    rpc: AsyncClient
    sender: TransactionSender
    authority: Keypair

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
        """Mint a 1-of-1 NFT, verified into ``collection_mint`` when given.

        Without an explicit ``mint`` keypair a fresh mint account is generated.
        """
        authority = self.authority.pubkey()
        if mint is None:
            mint = Keypair()
        mint_key = mint.pubkey()
        collection_key = (
            Pubkey.from_string(collection_mint) if collection_mint else None
        )
        rent = await self.rpc.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)

        metadata_data = encode_create_metadata_v3(
            name=name,
            symbol=symbol,
            uri=uri,
            seller_fee_basis_points=seller_fee_basis_points,
            creators=creators,
            collection_mint=collection_key,
            is_mutable=True,
            is_collection=is_collection,
        )
        instructions = [
            create_account(
                CreateAccountParams(
                    from_pubkey=authority,
                    to_pubkey=mint_key,
                    lamports=int(rent.value),
                    space=MINT_ACCOUNT_SIZE,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            initialize_mint(
                InitializeMintParams(
                    decimals=0,
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint_key,
                    mint_authority=authority,
                    freeze_authority=authority,
                )
            ),
            build_create_ata_idempotent_ix(authority, authority, mint_key),
            mint_to(
                MintToParams(
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint_key,
                    dest=derive_ata(authority, mint_key),
                    mint_authority=authority,
                    amount=1,
                )
            ),
            build_create_metadata_v3_ix(
                mint=mint_key,
                mint_authority=authority,
                payer=authority,
                update_authority=authority,
                data=metadata_data,
            ),
            build_create_master_edition_v3_ix(
                mint=mint_key,
                update_authority=authority,
                mint_authority=authority,
                payer=authority,
                max_supply=0,
            ),
        ]
        if collection_key is not None and not is_collection:
            instructions.append(
                build_verify_sized_collection_item_ix(
                    mint=mint_key,
                    collection_authority=authority,
                    payer=authority,
                    collection_mint=collection_key,
                )
            )

        signature = await self.sender.send(
            self.authority, instructions, extra_signers=[mint]
        )
        logger.info(
            "Minted NFT",
            extra={"mint": str(mint_key), "collection": collection_mint},
        )
        return MintResult(mint_address=str(mint_key), signature=signature)

    async def find_mint(self, mint_address: str) -> MintResult | None:
        """Look up an existing mint account and its creating transaction."""
        mint_key = Pubkey.from_string(mint_address)
        info = await self.rpc.get_account_info(mint_key)
        if info.value is None:
            return None
        history = await self.rpc.get_signatures_for_address(
            mint_key, limit=SIGNATURE_LOOKUP_LIMIT
        )
        # Newest first; the creating transaction is the oldest entry.
        signature = str(history.value[-1].signature) if history.value else None
        return MintResult(mint_address=mint_address, signature=signature)
