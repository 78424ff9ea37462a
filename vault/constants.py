"""Staking Vault Constants."""

from typing import Tuple

from solders.pubkey import Pubkey

from transaction.address import find_program_address

VAULT_PROGRAM_ID = Pubkey.from_string("Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS")
"""Public key that identifies the staking vault program."""

VAULT_MINT_DECIMALS: int = 9
"""Decimals of the staked token mint."""

ANCHOR_DISCRIMINATOR_LEN: int = 8
"""Length of the discriminator prefixed to instructions and accounts."""

VAULT_SEED = b"vault"
"""Seed used to derive the token vault."""
STAKE_INFO_SEED = b"stake_info"
"""Seed used to derive per-wallet stake records."""
STAKE_ACCOUNT_SEED = b"token"
"""Seed used to derive per-wallet escrow token accounts."""


def find_vault_address(program_id: Pubkey) -> Tuple[Pubkey, int]:
    """Generates the token vault address owned by the program"""
    return find_program_address([VAULT_SEED], program_id)


def find_stake_info_address(program_id: Pubkey, wallet: Pubkey) -> Tuple[Pubkey, int]:
    """Generates the stake record address for a wallet"""
    return find_program_address([STAKE_INFO_SEED, bytes(wallet)], program_id)


def find_stake_account_address(program_id: Pubkey, wallet: Pubkey) -> Tuple[Pubkey, int]:
    """Generates the escrow token account address holding a wallet's stake"""
    return find_program_address([STAKE_ACCOUNT_SEED, bytes(wallet)], program_id)

