"""One-time creation of the certified collection NFT."""

import logging
from dataclasses import dataclass

from lossy_mint.adapters.asset_fetcher import AssetFetcher
from lossy_mint.adapters.metaplex_minting_client import MintingClient
from lossy_mint.adapters.pinata_client import PinningClient
from lossy_mint.adapters.solana_chain_client import LAMPORTS_PER_SOL, ChainClient
from lossy_mint.domain.chain import CreatorShare
from lossy_mint.errors import InsufficientBalance
from lossy_mint.services.resilience import call_upstream
from lossy_mint.services.wallets import WalletDeriver

logger = logging.getLogger(__name__)

EXPLORER_URL = "https://explorer.solana.com/address/{address}"
COLLECTION_IMAGE_FILENAME = "lossy-collection.jpg"


@dataclass(frozen=True)
class CollectionProfile:
    """Name, artwork and royalties of the collection."""

    name: str
    symbol: str
    description: str
    image_url: str
    seller_fee_basis_points: int
    creators: tuple[CreatorShare, ...]


@dataclass
class CollectionService:
    """Pins the collection artwork and mints the collection NFT."""

    wallets: WalletDeriver
    chain: ChainClient
    pinning: PinningClient
    minting: MintingClient
    fetcher: AssetFetcher
    profile: CollectionProfile
    min_collection_sol: float = 0.015
    rpc_timeout: float = 30.0
    pin_timeout: float = 60.0
    confirm_timeout: float = 90.0

    async def create_collection(self, image: bytes | None = None) -> dict[str, object]:
        """Create the collection; fetch the configured artwork when none is given."""
        master = self.wallets.master_address()
        lamports = await call_upstream(
            "solana",
            lambda: self.chain.get_sol_balance(master),
            timeout=self.rpc_timeout,
            retries=2,
        )
        if lamports / LAMPORTS_PER_SOL < self.min_collection_sol:
            raise InsufficientBalance(
                f"Master wallet {master} needs at least "
                f"{self.min_collection_sol} SOL to create the collection"
            )

        if image is None:
            logger.info(
                "Fetching collection image", extra={"url": self.profile.image_url}
            )
            image = await call_upstream(
                "assets",
                lambda: self.fetcher.fetch_bytes(self.profile.image_url),
                timeout=self.pin_timeout,
                retries=1,
            )
        pinned_image = await call_upstream(
            "pinata",
            lambda: self.pinning.pin_file(
                COLLECTION_IMAGE_FILENAME,
                image,
                "image/jpeg",
                name=f"{self.profile.name} Collection Image",
            ),
            timeout=self.pin_timeout,
        )
        document = self.build_metadata(pinned_image.uri)
        pinned_metadata = await call_upstream(
            "pinata",
            lambda: self.pinning.pin_json(
                document, name=f"{self.profile.name} Collection Metadata"
            ),
            timeout=self.pin_timeout,
        )

        result = await call_upstream(
            "solana",
            lambda: self.minting.mint_nft(
                name=self.profile.name,
                symbol=self.profile.symbol,
                uri=pinned_metadata.uri,
                seller_fee_basis_points=self.profile.seller_fee_basis_points,
                creators=list(self.profile.creators),
                is_collection=True,
            ),
            timeout=self.confirm_timeout,
        )
        logger.info("Collection created", extra={"mint": result.mint_address})
        return {
            "success": True,
            "collectionMint": result.mint_address,
            "metadataUri": pinned_metadata.uri,
            "imageUri": pinned_image.uri,
            "signature": result.signature,
            "explorerUrl": EXPLORER_URL.format(address=result.mint_address),
            "nextSteps": [
                f"1. Set COLLECTION_MINT={result.mint_address} in the environment",
                "2. Redeploy the API",
                "3. Unset COLLECTION_SECRET to disable /create-collection",
            ],
        }

    def build_metadata(self, image_uri: str) -> dict[str, object]:
        return {
            "name": self.profile.name,
            "symbol": self.profile.symbol,
            "description": self.profile.description,
            "image": image_uri,
            "seller_fee_basis_points": self.profile.seller_fee_basis_points,
            "properties": {
                "files": [{"uri": image_uri, "type": "image/jpeg"}],
                "category": "image",
                "creators": [
                    {"address": creator.address, "share": creator.share}
                    for creator in self.profile.creators
                ],
            },
        }
