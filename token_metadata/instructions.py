"""Token Metadata Program Instructions."""

from typing import NamedTuple
from construct import Const, Flag, GreedyString, Prefixed, Struct, Int16ul, Int32ul  # type: ignore

from solana.constants import SYSTEM_PROGRAM_ID
from solders.pubkey import Pubkey
from solders.instruction import AccountMeta, Instruction

from token_metadata.constants import METADATA_PROGRAM_ID

CREATE_METADATA_ACCOUNT_V3 = 33
"""Instruction index of `CreateMetadataAccountV3`."""

OPTION_NONE = b"\x00"


class TokenMetadata(NamedTuple):
    """Display information for a fungible token."""

    name: str
    """Name of the token."""
    symbol: str
    """Ticker of the token."""
    uri: str
    """URI of the off-chain JSON description."""
    seller_fee_basis_points: int = 0
    """Royalty, always 0 for fungible tokens."""


class CreateMetadataAccountV3Params(NamedTuple):
    """Create the metadata account of a mint."""

    metadata: Pubkey
    """`[w]` Metadata account, derived from the mint."""
    mint: Pubkey
    """`[]` Mint of the token."""
    mint_authority: Pubkey
    """`[s]` Mint authority."""
    payer: Pubkey
    """`[s, w]` Payer for the metadata account."""
    update_authority: Pubkey
    """`[]` Authority allowed to update the metadata."""
    token_metadata: TokenMetadata
    """Name, symbol and uri."""
    is_mutable: bool = True
    """Whether the metadata can be updated later."""
    system_program_id: Pubkey = SYSTEM_PROGRAM_ID
    """`[]` System program."""
    program_id: Pubkey = METADATA_PROGRAM_ID
    """Token metadata program."""


DATA_V2_LAYOUT = Struct(
    "name" / Prefixed(Int32ul, GreedyString("utf8")),
    "symbol" / Prefixed(Int32ul, GreedyString("utf8")),
    "uri" / Prefixed(Int32ul, GreedyString("utf8")),
    "seller_fee_basis_points" / Int16ul,
    # creators, collection and uses are not set for fungible tokens
    "creators" / Const(OPTION_NONE),
    "collection" / Const(OPTION_NONE),
    "uses" / Const(OPTION_NONE),
)

CREATE_METADATA_ACCOUNT_V3_LAYOUT = Struct(
    "instruction_type" / Const(bytes([CREATE_METADATA_ACCOUNT_V3])),
    "data" / DATA_V2_LAYOUT,
    "is_mutable" / Flag,
    "collection_details" / Const(OPTION_NONE),
)


def create_metadata_account_v3(params: CreateMetadataAccountV3Params) -> Instruction:
    """Creates an instruction to store a mint's name, symbol and uri on chain."""
    return Instruction(
        accounts=[
            AccountMeta(pubkey=params.metadata, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.mint_authority, is_signer=True, is_writable=False),
            AccountMeta(pubkey=params.payer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=params.update_authority, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.system_program_id, is_signer=False, is_writable=False),
        ],
        program_id=params.program_id,
        data=CREATE_METADATA_ACCOUNT_V3_LAYOUT.build(
            dict(
                data=params.token_metadata._asdict(),
                is_mutable=params.is_mutable,
            )
        )
    )


def decode_token_metadata(data: bytes) -> TokenMetadata:
    parsed = CREATE_METADATA_ACCOUNT_V3_LAYOUT.parse(data)
    return TokenMetadata(
        name=parsed['data']['name'],
        symbol=parsed['data']['symbol'],
        uri=parsed['data']['uri'],
        seller_fee_basis_points=parsed['data']['seller_fee_basis_points'],
    )
