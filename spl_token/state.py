"""SPL Token State."""

from typing import NamedTuple, Optional

from solders.pubkey import Pubkey
from spl.token._layouts import ACCOUNT_LAYOUT, MINT_LAYOUT

ACCOUNT_STATE_INITIALIZED: int = 1


def decode_optional_pubkey(option: int, data: bytes) -> Optional[Pubkey]:
    if option:
        return Pubkey(data)
    else:
        return None


def encode_optional_pubkey(pubkey: Optional[Pubkey]) -> bytes:
    return bytes(pubkey) if pubkey else bytes(32)


class Mint(NamedTuple):
    """Fungible token mint."""
    mint_authority: Optional[Pubkey]
    supply: int
    decimals: int
    freeze_authority: Optional[Pubkey] = None

    @classmethod
    def decode(cls, data: bytes):
        parsed = MINT_LAYOUT.parse(data)
        return Mint(
            mint_authority=decode_optional_pubkey(parsed['mint_authority_option'], parsed['mint_authority']),
            supply=parsed['supply'],
            decimals=parsed['decimals'],
            freeze_authority=decode_optional_pubkey(parsed['freeze_authority_option'], parsed['freeze_authority']),
        )

    def encode(self) -> bytes:
        return MINT_LAYOUT.build(dict(
            mint_authority_option=int(self.mint_authority is not None),
            mint_authority=encode_optional_pubkey(self.mint_authority),
            supply=self.supply,
            decimals=self.decimals,
            is_initialized=1,
            freeze_authority_option=int(self.freeze_authority is not None),
            freeze_authority=encode_optional_pubkey(self.freeze_authority),
        ))


class TokenAccount(NamedTuple):
    """Balance of one mint held for one owner."""
    mint: Pubkey
    owner: Pubkey
    amount: int

    @classmethod
    def decode(cls, data: bytes):
        parsed = ACCOUNT_LAYOUT.parse(data)
        return TokenAccount(
            mint=Pubkey(parsed['mint']),
            owner=Pubkey(parsed['owner']),
            amount=parsed['amount'],
        )

    def encode(self) -> bytes:
        return ACCOUNT_LAYOUT.build(dict(
            mint=bytes(self.mint),
            owner=bytes(self.owner),
            amount=self.amount,
            delegate_option=0,
            delegate=bytes(32),
            state=ACCOUNT_STATE_INITIALIZED,
            is_native_option=0,
            is_native=0,
            delegated_amount=0,
            close_authority_option=0,
            close_authority=bytes(32),
        ))
