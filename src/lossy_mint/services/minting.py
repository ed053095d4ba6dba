"""Token metadata documents and NFT minting for sessions."""

import logging
from dataclasses import dataclass

from solders.keypair import Keypair

from lossy_mint.adapters.metaplex_minting_client import MintingClient
from lossy_mint.adapters.pinata_client import PinningClient
from lossy_mint.domain.chain import CreatorShare, MintResult
from lossy_mint.domain.sessions import OutputType, Session
from lossy_mint.errors import ConfigurationError, UpstreamTimeout
from lossy_mint.services.resilience import call_upstream

logger = logging.getLogger(__name__)

_FILE_TYPES = {OutputType.PHOTO: "image/jpeg", OutputType.VIDEO: "video/webm"}
_CATEGORIES = {OutputType.PHOTO: "image", OutputType.VIDEO: "video"}


@dataclass(frozen=True)
class NftProfile:
    """Static traits shared by every minted piece."""

    name_prefix: str
    symbol: str
    description: str
    seller_fee_basis_points: int
    creators: tuple[CreatorShare, ...]
    collection_mint: str | None = None


def build_creators(
    creator_address: str, master_address: str, verify_creators: bool
) -> tuple[CreatorShare, ...]:
    """Royalties go to the artist; the master wallet signs as verified creator."""
    if not verify_creators:
        return (CreatorShare(address=creator_address, share=100),)
    if creator_address == master_address:
        return (CreatorShare(address=creator_address, share=100, verified=True),)
    return (
        CreatorShare(address=creator_address, share=100),
        CreatorShare(address=master_address, share=0, verified=True),
    )


def build_token_metadata(profile: NftProfile, session: Session) -> dict[str, object]:
    """Build the off-chain metadata JSON for a session's NFT."""
    metadata = session.metadata
    attributes: list[dict[str, object]] = [
        {"trait_type": "Output", "value": session.output_type.value.capitalize()},
        {"trait_type": "Edition", "value": session.session_index},
    ]
    if metadata.mode:
        attributes.append({"trait_type": "Mode", "value": metadata.mode})
    if metadata.speed is not None:
        attributes.append({"trait_type": "Speed", "value": metadata.speed})
    for question, answer in metadata.answers.items():
        attributes.append({"trait_type": str(question), "value": str(answer)})

    document: dict[str, object] = {
        "name": f"{profile.name_prefix} #{session.session_index}",
        "symbol": profile.symbol,
        "description": profile.description,
        "image": metadata.file_uri,
        "seller_fee_basis_points": profile.seller_fee_basis_points,
        "attributes": attributes,
        "properties": {
            "files": [
                {"uri": metadata.file_uri, "type": _FILE_TYPES[session.output_type]}
            ],
            "category": _CATEGORIES[session.output_type],
            "creators": [
                {"address": creator.address, "share": creator.share}
                for creator in profile.creators
            ],
        },
    }
    if session.output_type is OutputType.VIDEO:
        document["animation_url"] = metadata.file_uri
    return document


@dataclass
class NftMintingService:
    """Pins a session's metadata and mints it into the collection."""

    pinning: PinningClient
    minting: MintingClient
    profile: NftProfile
    pin_timeout: float = 60.0
    confirm_timeout: float = 90.0
    rpc_timeout: float = 30.0

    async def mint_session(self, session: Session, mint: Keypair) -> MintResult:
        """Mint the NFT for a paid session into its reserved mint account."""
        collection_mint = self.profile.collection_mint
        if not collection_mint:
            raise ConfigurationError("COLLECTION_MINT is not configured")
        if not session.metadata.file_uri:
            raise ConfigurationError(
                f"Session {session.session_id} has no fileUri to mint"
            )

        document = build_token_metadata(self.profile, session)
        pinned = await call_upstream(
            "pinata",
            lambda: self.pinning.pin_json(
                document, name=f"{session.session_id}-metadata.json"
            ),
            timeout=self.pin_timeout,
        )
        try:
            return await call_upstream(
                "solana",
                lambda: self.minting.mint_nft(
                    name=str(document["name"]),
                    symbol=self.profile.symbol,
                    uri=pinned.uri,
                    seller_fee_basis_points=self.profile.seller_fee_basis_points,
                    creators=list(self.profile.creators),
                    collection_mint=collection_mint,
                    mint=mint,
                ),
                timeout=self.confirm_timeout,
            )
        except UpstreamTimeout:
            logger.warning(
                "Mint confirmation timed out; the next poll reconciles it",
                extra={
                    "session_id": session.session_id,
                    "mint": str(mint.pubkey()),
                    "metadata_uri": pinned.uri,
                },
            )
            raise

    async def find_existing_mint(self, mint: Keypair) -> MintResult | None:
        """Return the session's mint if an earlier attempt already landed."""
        mint_address = str(mint.pubkey())
        return await call_upstream(
            "solana",
            lambda: self.minting.find_mint(mint_address),
            timeout=self.rpc_timeout,
            retries=1,
        )
