"""Staking Vault State."""

import hashlib
from typing import NamedTuple
from construct import Const, Struct, Int8ul, Int64ul  # type: ignore

from solders.pubkey import Pubkey
from spl.token._layouts import PUBLIC_KEY_LAYOUT

from vault.constants import ANCHOR_DISCRIMINATOR_LEN


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator, the first 8 bytes of sha256("account:<Name>")."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:ANCHOR_DISCRIMINATOR_LEN]


class StakeInfo(NamedTuple):
    """Per-wallet stake record."""

    owner: Pubkey
    """Wallet that staked."""

    amount_staked: int
    """Amount currently held in the wallet's escrow, in the mint's smallest unit."""

    bump: int
    """Bump seed of the record's derived address."""

    @property
    def is_staked(self) -> bool:
        return self.amount_staked > 0

    @classmethod
    def decode(cls, data: bytes):
        parsed = STAKE_INFO_LAYOUT.parse(data)
        return StakeInfo(
            owner=Pubkey(parsed['owner']),
            amount_staked=parsed['amount_staked'],
            bump=parsed['bump'],
        )

    def encode(self) -> bytes:
        return STAKE_INFO_LAYOUT.build(dict(
            owner=bytes(self.owner),
            amount_staked=self.amount_staked,
            bump=self.bump,
        ))


STAKE_INFO_DISCRIMINATOR = account_discriminator("StakeInfo")

STAKE_INFO_LAYOUT = Struct(
    "discriminator" / Const(STAKE_INFO_DISCRIMINATOR),
    "owner" / PUBLIC_KEY_LAYOUT,
    "amount_staked" / Int64ul,
    "bump" / Int8ul,
)
