"""Metaplex Token Metadata instruction builders."""

from borsh_construct import U8, U16, U64, Bool, CStruct, Enum, Option, String, Vec
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from lossy_mint.domain.chain import CreatorShare

TOKEN_METADATA_PROGRAM_ID = Pubkey.from_string(
    "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
)
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)
SYS_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
SYSVAR_RENT_PUBKEY = Pubkey.from_string("SysvarRent111111111111111111111111111111111")

CREATE_MASTER_EDITION_V3 = 17
VERIFY_SIZED_COLLECTION_ITEM = 30
CREATE_METADATA_ACCOUNT_V3 = 33

MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200

CreatorLayout = CStruct("address" / U8[32], "verified" / Bool, "share" / U8)
CollectionLayout = CStruct("verified" / Bool, "key" / U8[32])
UsesLayout = CStruct("use_method" / U8, "remaining" / U64, "total" / U64)
DataV2Layout = CStruct(
    "name" / String,
    "symbol" / String,
    "uri" / String,
    "seller_fee_basis_points" / U16,
    "creators" / Option(Vec(CreatorLayout)),
    "collection" / Option(CollectionLayout),
    "uses" / Option(UsesLayout),
)
CollectionDetailsLayout = Enum(
    "V1" / CStruct("size" / U64), enum_name="CollectionDetails"
)
CreateMetadataAccountArgsV3Layout = CStruct(
    "data" / DataV2Layout,
    "is_mutable" / Bool,
    "collection_details" / Option(CollectionDetailsLayout),
)
CreateMasterEditionArgsLayout = CStruct("max_supply" / Option(U64))


def metadata_pda(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )[0]


def master_edition_pda(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint), b"edition"],
        TOKEN_METADATA_PROGRAM_ID,
    )[0]


def derive_ata(owner: Pubkey, mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM_ID), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )[0]


def build_create_ata_idempotent_ix(
    payer: Pubkey, owner: Pubkey, mint: Pubkey
) -> Instruction:
    # CreateIdempotent (instruction 1) succeeds when the account already exists
    metas = [
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=derive_ata(owner, mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=owner, is_signer=False, is_writable=False),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYS_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(
        program_id=ASSOCIATED_TOKEN_PROGRAM_ID, data=bytes([1]), accounts=metas
    )


def encode_create_metadata_v3(  # noqa: PLR0913
    *,
    name: str,
    symbol: str,
    uri: str,
    seller_fee_basis_points: int,
    creators: list[CreatorShare],
    collection_mint: Pubkey | None,
    is_mutable: bool,
    is_collection: bool,
) -> bytes:
    """Encode CreateMetadataAccountV3 instruction data."""
    _check_length("name", name, MAX_NAME_LENGTH)
    _check_length("symbol", symbol, MAX_SYMBOL_LENGTH)
    _check_length("uri", uri, MAX_URI_LENGTH)
    args = {
        "data": {
            "name": name,
            "symbol": symbol,
            "uri": uri,
            "seller_fee_basis_points": seller_fee_basis_points,
            "creators": [
                {
                    "address": list(bytes(Pubkey.from_string(creator.address))),
                    "verified": creator.verified,
                    "share": creator.share,
                }
                for creator in creators
            ]
            or None,
            "collection": (
                {"verified": False, "key": list(bytes(collection_mint))}
                if collection_mint is not None
                else None
            ),
            "uses": None,
        },
        "is_mutable": is_mutable,
        "collection_details": (
            CollectionDetailsLayout.enum.V1(size=0) if is_collection else None
        ),
    }
    data = CreateMetadataAccountArgsV3Layout.build(args)
    return bytes([CREATE_METADATA_ACCOUNT_V3]) + data


def build_create_metadata_v3_ix(
    *,
    mint: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    data: bytes,
) -> Instruction:
    metas = [
        AccountMeta(pubkey=metadata_pda(mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=mint_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=update_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=SYS_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSVAR_RENT_PUBKEY, is_signer=False, is_writable=False),
    ]
    return Instruction(
        program_id=TOKEN_METADATA_PROGRAM_ID, data=data, accounts=metas
    )


def build_create_master_edition_v3_ix(
    *,
    mint: Pubkey,
    update_authority: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    max_supply: int | None = 0,
) -> Instruction:
    data = bytes([CREATE_MASTER_EDITION_V3]) + CreateMasterEditionArgsLayout.build(
        {"max_supply": max_supply}
    )
    metas = [
        AccountMeta(pubkey=master_edition_pda(mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=True),
        AccountMeta(pubkey=update_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=mint_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=metadata_pda(mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYS_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSVAR_RENT_PUBKEY, is_signer=False, is_writable=False),
    ]
    return Instruction(
        program_id=TOKEN_METADATA_PROGRAM_ID, data=data, accounts=metas
    )


def build_verify_sized_collection_item_ix(
    *,
    mint: Pubkey,
    collection_authority: Pubkey,
    payer: Pubkey,
    collection_mint: Pubkey,
) -> Instruction:
    metas = [
        AccountMeta(pubkey=metadata_pda(mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=collection_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=collection_mint, is_signer=False, is_writable=False),
        AccountMeta(
            pubkey=metadata_pda(collection_mint), is_signer=False, is_writable=True
        ),
        AccountMeta(
            pubkey=master_edition_pda(collection_mint),
            is_signer=False,
            is_writable=False,
        ),
    ]
    return Instruction(
        program_id=TOKEN_METADATA_PROGRAM_ID,
        data=bytes([VERIFY_SIZED_COLLECTION_ITEM]),
        accounts=metas,
    )


def _check_length(field_name: str, value: str, limit: int) -> None:
    if len(value.encode("utf-8")) > limit:
        raise ValueError(f"Token metadata {field_name} exceeds {limit} bytes")
