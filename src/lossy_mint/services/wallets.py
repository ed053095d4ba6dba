"""Deterministic wallet derivation from the master seed.

Mnemonic seeds follow BIP39 and SLIP-0010 ed25519 derivation, which only
supports hardened indices. The master wallet lives at ``m/44'/501'/0'/0'``,
session ``n`` pays into ``m/44'/501'/n'/0'`` and its NFT mint account is
``m/44'/501'/n'/1'``.
"""

import json
from dataclasses import dataclass, field

import base58
from bip_utils import (
    Bip32Slip10Ed25519,
    Bip32Utils,
    Bip39SeedGenerator,
    MnemonicChecksumError,
)
from solders.keypair import Keypair

from lossy_mint.errors import ConfigurationError, InvalidRequest

_HARDENED_OFFSET = 0x80000000
_SOLANA_COIN_TYPE = 501
_PAYMENT_CHANGE = 0
_MINT_CHANGE = 1


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """Return the 64-byte BIP39 seed for a mnemonic phrase."""
    return bytes(Bip39SeedGenerator(" ".join(mnemonic.split())).Generate(passphrase))


def derive_ed25519_private_key(seed: bytes, path: list[int]) -> bytes:
    """Derive a 32-byte ed25519 private seed along a hardened SLIP-0010 path."""
    node = Bip32Slip10Ed25519.FromSeed(seed)
    for index in path:
        node = node.ChildKey(Bip32Utils.HardenIndex(index))
    return node.PrivateKey().Raw().ToBytes()


def solana_path(account: int, change: int = _PAYMENT_CHANGE) -> list[int]:
    """Return the ``m/44'/501'/<account>'/<change>'`` path."""
    return [44, _SOLANA_COIN_TYPE, account, change]


@dataclass
class WalletDeriver:
    """Derives the master keypair and per-session keypairs."""

    master_seed: str
    _hd_seed: bytes = field(init=False, repr=False)
    _master: Keypair = field(init=False, repr=False)

    def __post_init__(self) -> None:
        raw = self.master_seed.strip()
        if not raw:
            raise ConfigurationError("MASTER_WALLET_SEED not configured")
        secret_key = _parse_secret_key(raw)
        if secret_key is not None:
            self._master = secret_key
            self._hd_seed = bytes(secret_key)[:32]
            return
        try:
            self._hd_seed = mnemonic_to_seed(raw)
        except (ValueError, MnemonicChecksumError) as exc:
            raise ConfigurationError(
                f"MASTER_WALLET_SEED is not a valid BIP39 mnemonic: {exc}"
            ) from exc
        self._master = Keypair.from_seed(
            derive_ed25519_private_key(self._hd_seed, solana_path(0))
        )

    def master_keypair(self) -> Keypair:
        """Return the master wallet keypair."""
        return self._master

    def master_address(self) -> str:
        return str(self._master.pubkey())

    def session_keypair(self, session_index: int) -> Keypair:
        """Return the payment keypair for a session index."""
        return self._derive(session_index, _PAYMENT_CHANGE)

    def payment_address(self, session_index: int) -> str:
        return str(self.session_keypair(session_index).pubkey())

    def mint_keypair(self, session_index: int) -> Keypair:
        """Return the keypair of the NFT mint account reserved for a session.

        A session can only ever create this one mint account, so a
        rebroadcast after an unconfirmed mint fails on-chain instead of
        minting a second NFT.
        """
        return self._derive(session_index, _MINT_CHANGE)

    def mint_address(self, session_index: int) -> str:
        return str(self.mint_keypair(session_index).pubkey())

    def _derive(self, session_index: int, change: int) -> Keypair:
        if session_index < 1 or session_index >= _HARDENED_OFFSET:
            raise InvalidRequest(f"Invalid session index: {session_index}")
        private_key = derive_ed25519_private_key(
            self._hd_seed, solana_path(session_index, change)
        )
        return Keypair.from_seed(private_key)


def _parse_secret_key(raw: str) -> Keypair | None:
    """Return a keypair when the seed is a raw secret key, else None."""
    if raw.startswith("["):
        try:
            values = json.loads(raw)
            return Keypair.from_bytes(bytes(values))
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(
                f"MASTER_WALLET_SEED is not a valid keypair array: {exc}"
            ) from exc
    if " " in raw:
        return None
    try:
        return Keypair.from_bytes(base58.b58decode(raw))
    except (ValueError, TypeError) as exc:
        raise ConfigurationError(
            "MASTER_WALLET_SEED must be a BIP39 mnemonic, a base58 secret key, "
            "or a JSON byte array"
        ) from exc
