"""Token Metadata Program Constants."""

from typing import Tuple

from solders.pubkey import Pubkey

from transaction.address import find_program_address

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")
"""Public key that identifies the Metaplex Token Metadata program."""

MAX_METADATA_LEN: int = 679
"""Size of a metadata account."""

METADATA_SEED_PREFIX = b"metadata"
"""Seed used to avoid certain collision attacks."""


def find_metadata_account(
    mint_key: Pubkey
) -> Tuple[Pubkey, int]:
    """Generates the metadata account program address"""
    return find_program_address(
        [
            METADATA_SEED_PREFIX,
            bytes(METADATA_PROGRAM_ID),
            bytes(mint_key)
        ],
        METADATA_PROGRAM_ID
    )
