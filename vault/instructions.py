"""Staking Vault Instructions."""

import hashlib
from enum import IntEnum
from typing import List, NamedTuple
from construct import Bytes, Mapping, Struct, Switch, Int64ul, Pass  # type: ignore

from solana.constants import SYSTEM_PROGRAM_ID
from solders.pubkey import Pubkey
from solders.instruction import AccountMeta, Instruction
from spl.token.constants import TOKEN_PROGRAM_ID

from vault.constants import ANCHOR_DISCRIMINATOR_LEN
from vault.errors import InvalidAccount


class InitializeParams(NamedTuple):
    """Initialize the program's token vault."""

    program_id: Pubkey
    """Staking vault program account."""
    signer: Pubkey
    """`[s, w]` Payer for the new vault account."""
    token_vault_account: Pubkey
    """`[w]` Vault token account, derived from the `vault` seed."""
    mint: Pubkey
    """`[]` Mint of the staked token."""
    token_program_id: Pubkey = TOKEN_PROGRAM_ID
    """`[]` SPL Token program id."""
    system_program_id: Pubkey = SYSTEM_PROGRAM_ID
    """`[]` System program id."""


class StakeParams(NamedTuple):
    """Move tokens from a wallet into its escrow account."""

    program_id: Pubkey
    """Staking vault program account."""
    signer: Pubkey
    """`[s, w]` Staking wallet, also pays for lazily created accounts."""
    stake_info_account: Pubkey
    """`[w]` Stake record, derived from `stake_info` and the wallet."""
    stake_account: Pubkey
    """`[w]` Escrow token account, derived from `token` and the wallet."""
    user_token_account: Pubkey
    """`[w]` Wallet's token account, debited."""
    mint: Pubkey
    """`[]` Mint of the staked token."""
    amount: int
    """Amount to stake, in the mint's smallest unit."""
    token_program_id: Pubkey = TOKEN_PROGRAM_ID
    """`[]` SPL Token program id."""
    system_program_id: Pubkey = SYSTEM_PROGRAM_ID
    """`[]` System program id."""


class DestakeParams(NamedTuple):
    """Return a wallet's whole stake from escrow."""

    program_id: Pubkey
    """Staking vault program account."""
    signer: Pubkey
    """`[s, w]` Staking wallet."""
    token_vault_account: Pubkey
    """`[w]` Vault token account."""
    stake_info_account: Pubkey
    """`[w]` Stake record."""
    stake_account: Pubkey
    """`[w]` Escrow token account, debited."""
    user_token_account: Pubkey
    """`[w]` Wallet's token account, credited."""
    mint: Pubkey
    """`[]` Mint of the staked token."""
    token_program_id: Pubkey = TOKEN_PROGRAM_ID
    """`[]` SPL Token program id."""
    system_program_id: Pubkey = SYSTEM_PROGRAM_ID
    """`[]` System program id."""


class InstructionType(IntEnum):
    """Staking Vault Instruction Types."""

    INITIALIZE = 0
    STAKE = 1
    DESTAKE = 2


INITIALIZE_ACCOUNTS = 5
STAKE_ACCOUNTS = 7
DESTAKE_ACCOUNTS = 8


def instruction_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator, the first 8 bytes of sha256("global:<name>")."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:ANCHOR_DISCRIMINATOR_LEN]


INSTRUCTION_DISCRIMINATORS = {
    InstructionType.INITIALIZE: instruction_discriminator("initialize"),
    InstructionType.STAKE: instruction_discriminator("stake"),
    InstructionType.DESTAKE: instruction_discriminator("destake"),
}

AMOUNT_LAYOUT = Struct(
    "amount" / Int64ul
)

INSTRUCTIONS_LAYOUT = Struct(
    "instruction_type" / Mapping(Bytes(ANCHOR_DISCRIMINATOR_LEN), INSTRUCTION_DISCRIMINATORS),
    "args"
    / Switch(
        lambda this: this.instruction_type,
        {
            InstructionType.INITIALIZE: Pass,
            InstructionType.STAKE: AMOUNT_LAYOUT,
            InstructionType.DESTAKE: Pass,
        },
    ),
)


def initialize(params: InitializeParams) -> Instruction:
    """Creates a transaction instruction to create the vault token account."""
    return Instruction(
        accounts=[
            AccountMeta(pubkey=params.signer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=params.token_vault_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.token_program_id, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.system_program_id, is_signer=False, is_writable=False),
        ],
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.INITIALIZE,
                args=None,
            )
        )
    )


def stake(params: StakeParams) -> Instruction:
    """Creates a transaction instruction to stake tokens into the wallet's escrow."""
    return Instruction(
        accounts=[
            AccountMeta(pubkey=params.signer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=params.stake_info_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.stake_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.user_token_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.token_program_id, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.system_program_id, is_signer=False, is_writable=False),
        ],
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.STAKE,
                args={'amount': params.amount},
            )
        )
    )


def destake(params: DestakeParams) -> Instruction:
    """Creates a transaction instruction to return the wallet's whole stake."""
    return Instruction(
        accounts=[
            AccountMeta(pubkey=params.signer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=params.token_vault_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.stake_info_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.stake_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.user_token_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.token_program_id, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.system_program_id, is_signer=False, is_writable=False),
        ],
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.DESTAKE,
                args=None,
            )
        )
    )


def _accounts(instruction: Instruction, expected: int) -> List[AccountMeta]:
    accounts = instruction.accounts
    if len(accounts) < expected:
        raise InvalidAccount(f"Expected {expected} accounts, found {len(accounts)}")
    return accounts


def decode_initialize(instruction: Instruction) -> InitializeParams:
    accounts = _accounts(instruction, INITIALIZE_ACCOUNTS)
    return InitializeParams(
        program_id=instruction.program_id,
        signer=accounts[0].pubkey,
        token_vault_account=accounts[1].pubkey,
        mint=accounts[2].pubkey,
        token_program_id=accounts[3].pubkey,
        system_program_id=accounts[4].pubkey,
    )


def decode_stake(instruction: Instruction) -> StakeParams:
    parsed = INSTRUCTIONS_LAYOUT.parse(instruction.data)
    accounts = _accounts(instruction, STAKE_ACCOUNTS)
    return StakeParams(
        program_id=instruction.program_id,
        signer=accounts[0].pubkey,
        stake_info_account=accounts[1].pubkey,
        stake_account=accounts[2].pubkey,
        user_token_account=accounts[3].pubkey,
        mint=accounts[4].pubkey,
        amount=parsed['args']['amount'],
        token_program_id=accounts[5].pubkey,
        system_program_id=accounts[6].pubkey,
    )


def decode_destake(instruction: Instruction) -> DestakeParams:
    accounts = _accounts(instruction, DESTAKE_ACCOUNTS)
    return DestakeParams(
        program_id=instruction.program_id,
        signer=accounts[0].pubkey,
        token_vault_account=accounts[1].pubkey,
        stake_info_account=accounts[2].pubkey,
        stake_account=accounts[3].pubkey,
        user_token_account=accounts[4].pubkey,
        mint=accounts[5].pubkey,
        token_program_id=accounts[6].pubkey,
        system_program_id=accounts[7].pubkey,
    )


def decode_instruction_type(instruction: Instruction) -> InstructionType:
    return INSTRUCTIONS_LAYOUT.parse(instruction.data)['instruction_type']
