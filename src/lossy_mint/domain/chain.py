"""Results of on-chain operations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MintResult:
    """A confirmed NFT mint.

    ``signature`` is None when the mint was found on-chain after an earlier
    attempt and its creating transaction could not be looked up.
    """

    mint_address: str
    signature: str | None


@dataclass(frozen=True)
class SweepResult:
    """A confirmed transfer of a session wallet's funds to the master wallet."""

    signature: str
    usdc_amount: float
    sol_lamports: int


@dataclass(frozen=True)
class CreatorShare:
    """Royalty creator entry for token metadata."""

    address: str
    share: int
    verified: bool = False


@dataclass(frozen=True)
class WalletBalance:
    """Diagnostic view of a derived wallet holding USDC."""

    index: int
    address: str
    balance: float

    def to_dict(self) -> dict[str, object]:
        return {"index": self.index, "address": self.address, "balance": self.balance}
