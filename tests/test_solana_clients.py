"""Tests for the Solana adapters against fake RPC objects."""

import asyncio
from dataclasses import dataclass, field
from types import SimpleNamespace

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer

from lossy_mint.adapters.metaplex_minting_client import MetaplexMintingClient
from lossy_mint.adapters.solana_chain_client import SolanaChainClient
from lossy_mint.adapters.token_metadata import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_METADATA_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    derive_ata,
)
from lossy_mint.adapters.transaction_sender import TransactionSender
from lossy_mint.config import USDC_MAINNET_MINT
from lossy_mint.domain.chain import CreatorShare

USDC = Pubkey.from_string(USDC_MAINNET_MINT)
SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")


@dataclass
class FakeRpc:
    """Answers the RPC calls made by the adapters."""

    accounts: set[Pubkey] = field(default_factory=set)
    token_amounts: dict[Pubkey, int] = field(default_factory=dict)
    lamports: dict[Pubkey, int] = field(default_factory=dict)
    sent: list[bytes] = field(default_factory=list)
    confirmed: list[dict[str, object]] = field(default_factory=list)
    history: dict[Pubkey, list[Signature]] = field(default_factory=dict)

    async def get_latest_blockhash(self, commitment=None):
        return SimpleNamespace(
            value=SimpleNamespace(
                blockhash=Hash.new_unique(), last_valid_block_height=1234
            )
        )

    async def send_raw_transaction(self, txn: bytes, opts=None):
        self.sent.append(txn)
        return SimpleNamespace(value=Signature.default())

    async def confirm_transaction(self, signature, commitment=None, **kwargs):
        self.confirmed.append({"signature": signature, **kwargs})
        return SimpleNamespace(value=[])

    async def get_account_info(self, pubkey: Pubkey):
        return SimpleNamespace(value=object() if pubkey in self.accounts else None)

    async def get_token_account_balance(self, pubkey: Pubkey):
        return SimpleNamespace(
            value=SimpleNamespace(amount=str(self.token_amounts[pubkey]), decimals=6)
        )

    async def get_balance(self, pubkey: Pubkey):
        return SimpleNamespace(value=self.lamports.get(pubkey, 0))

    async def get_minimum_balance_for_rent_exemption(self, size: int):
        return SimpleNamespace(value=1_461_600)

    async def get_signatures_for_address(self, address: Pubkey, limit=None):
        return SimpleNamespace(
            value=[
                SimpleNamespace(signature=signature)
                for signature in self.history.get(address, [])
            ]
        )


@dataclass
class RecordingSender:
    """Captures instructions instead of broadcasting them."""

    sent: list[tuple[Keypair, list[Instruction], list[Keypair]]] = field(
        default_factory=list
    )

    async def send(self, payer, instructions, extra_signers=None) -> str:
        self.sent.append((payer, instructions, extra_signers or []))
        return f"sig-{len(self.sent)}"


def test_transaction_sender_confirms_with_block_height() -> None:
    rpc = FakeRpc()
    payer = Keypair()
    sender = TransactionSender(rpc)
    ix = transfer(
        TransferParams(
            from_pubkey=payer.pubkey(), to_pubkey=Keypair().pubkey(), lamports=1
        )
    )

    signature = asyncio.run(sender.send(payer, [ix]))

    assert signature == str(Signature.default())
    assert len(rpc.sent) == 1
    assert rpc.confirmed[0]["last_valid_block_height"] == 1234


def test_usdc_balance_reads_token_account() -> None:
    rpc = FakeRpc()
    owner = Keypair().pubkey()
    ata = derive_ata(owner, USDC)
    rpc.accounts.add(ata)
    rpc.token_amounts[ata] = 4_999_999
    client = SolanaChainClient(
        rpc=rpc, sender=RecordingSender(), payer=Keypair(), usdc_mint=USDC
    )

    assert asyncio.run(client.get_usdc_balance(str(owner))) == 4.999999
    assert asyncio.run(client.get_usdc_balance(str(Keypair().pubkey()))) == 0.0


def test_init_token_account_only_when_missing() -> None:
    rpc = FakeRpc()
    sender = RecordingSender()
    owner = Keypair().pubkey()
    client = SolanaChainClient(rpc=rpc, sender=sender, payer=Keypair(), usdc_mint=USDC)

    ata = asyncio.run(client.init_token_account(str(owner)))
    rpc.accounts.add(derive_ata(owner, USDC))
    asyncio.run(client.init_token_account(str(owner)))

    assert ata == str(derive_ata(owner, USDC))
    assert len(sender.sent) == 1
    assert sender.sent[0][1][0].program_id == ASSOCIATED_TOKEN_PROGRAM_ID


def test_sweep_moves_usdc_and_sol_to_master() -> None:
    rpc = FakeRpc()
    sender = RecordingSender()
    master = Keypair()
    session = Keypair()
    source = derive_ata(session.pubkey(), USDC)
    rpc.accounts.add(source)
    rpc.token_amounts[source] = 5_000_000
    rpc.lamports[session.pubkey()] = 890_880
    client = SolanaChainClient(rpc=rpc, sender=sender, payer=master, usdc_mint=USDC)

    result = asyncio.run(client.sweep(session, include_sol=True))

    assert result is not None
    assert result.signature == "sig-1"
    assert result.usdc_amount == 5.0
    assert result.sol_lamports == 890_880
    payer, instructions, signers = sender.sent[0]
    assert payer is master
    assert signers == [session]
    assert [ix.program_id for ix in instructions] == [
        ASSOCIATED_TOKEN_PROGRAM_ID,
        TOKEN_PROGRAM_ID,
        TOKEN_PROGRAM_ID,
        SYSTEM_PROGRAM_ID,
    ]


def test_sweep_with_nothing_to_move_returns_none() -> None:
    sender = RecordingSender()
    client = SolanaChainClient(
        rpc=FakeRpc(), sender=sender, payer=Keypair(), usdc_mint=USDC
    )

    assert asyncio.run(client.sweep(Keypair(), include_sol=True)) is None
    assert sender.sent == []


def test_mint_nft_into_collection() -> None:
    sender = RecordingSender()
    authority = Keypair()
    client = MetaplexMintingClient(rpc=FakeRpc(), sender=sender, authority=authority)

    result = asyncio.run(
        client.mint_nft(
            name="Lossy #1",
            symbol="LOSSY",
            uri="https://gateway.test/ipfs/meta",
            seller_fee_basis_points=1500,
            creators=[CreatorShare(address=str(authority.pubkey()), share=100)],
            collection_mint=str(Keypair().pubkey()),
        )
    )

    _, instructions, signers = sender.sent[0]
    assert result.signature == "sig-1"
    assert result.mint_address == str(signers[0].pubkey())
    assert len(instructions) == 7
    assert [ix.program_id for ix in instructions][-3:] == [
        TOKEN_METADATA_PROGRAM_ID,
        TOKEN_METADATA_PROGRAM_ID,
        TOKEN_METADATA_PROGRAM_ID,
    ]


def test_mint_collection_skips_verification() -> None:
    sender = RecordingSender()
    client = MetaplexMintingClient(rpc=FakeRpc(), sender=sender, authority=Keypair())

    asyncio.run(
        client.mint_nft(
            name="Lossy",
            symbol="LOSSY",
            uri="https://gateway.test/ipfs/collection",
            seller_fee_basis_points=1500,
            creators=[],
            is_collection=True,
        )
    )

    assert len(sender.sent[0][1]) == 6


def test_mint_nft_uses_supplied_mint_keypair() -> None:
    sender = RecordingSender()
    client = MetaplexMintingClient(rpc=FakeRpc(), sender=sender, authority=Keypair())
    mint = Keypair()

    result = asyncio.run(
        client.mint_nft(
            name="Lossy #4",
            symbol="LOSSY",
            uri="https://gateway.test/ipfs/meta",
            seller_fee_basis_points=1500,
            creators=[],
            collection_mint=str(Keypair().pubkey()),
            mint=mint,
        )
    )

    assert result.mint_address == str(mint.pubkey())
    assert sender.sent[0][2] == [mint]


def test_find_mint_reports_existing_account_and_creating_signature() -> None:
    rpc = FakeRpc()
    client = MetaplexMintingClient(
        rpc=rpc, sender=RecordingSender(), authority=Keypair()
    )
    mint = Keypair().pubkey()
    creation = Signature.new_unique()
    rpc.accounts.add(mint)
    rpc.history[mint] = [Signature.new_unique(), creation]

    found = asyncio.run(client.find_mint(str(mint)))
    missing = asyncio.run(client.find_mint(str(Keypair().pubkey())))

    assert found is not None
    assert found.mint_address == str(mint)
    assert found.signature == str(creation)
    assert missing is None
