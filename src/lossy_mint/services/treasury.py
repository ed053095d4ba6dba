"""Master wallet funding status."""

from dataclasses import dataclass

from lossy_mint.adapters.solana_chain_client import LAMPORTS_PER_SOL, ChainClient
from lossy_mint.services.resilience import call_upstream
from lossy_mint.services.wallets import WalletDeriver


@dataclass
class TreasuryService:
    """Reports whether the master wallet can pay for mints."""

    wallets: WalletDeriver
    chain: ChainClient
    min_master_sol: float = 0.05
    rpc_timeout: float = 30.0

    async def master_status(self) -> dict[str, object]:
        address = self.wallets.master_address()
        lamports = await call_upstream(
            "solana",
            lambda: self.chain.get_sol_balance(address),
            timeout=self.rpc_timeout,
            retries=2,
        )
        sol_balance = lamports / LAMPORTS_PER_SOL
        funded = sol_balance >= self.min_master_sol
        return {
            "masterAddress": address,
            "solBalance": f"{sol_balance:.6f}",
            "solBalanceRaw": lamports,
            "funded": funded,
            "recommendation": (
                "Balance looks good"
                if funded
                else f"Send at least 0.1 SOL to {address} to fund minting operations"
            ),
        }
