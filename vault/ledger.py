"""Staking vault state machine.

`VaultLedger` holds every account the vault protocol touches (mints, token
accounts and stake records) in a single arena keyed by address, and applies
the Initialize / Stake / Destake transitions to it. It performs no I/O: the
local bank drives it from decoded instructions, and tests drive it directly.

Custody is per wallet. A wallet's stake sits in its own escrow token account
derived from `("token", wallet)`, so one wallet's activity never changes
another wallet's escrow.
"""

from typing import AbstractSet, Dict, Optional, Union

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from spl_token.state import Mint, TokenAccount
from vault.constants import VAULT_PROGRAM_ID, \
    find_vault_address, \
    find_stake_info_address, \
    find_stake_account_address
from vault.errors import AlreadyInitialized, InsufficientFunds, InvalidAccount, InvalidAmount, \
    NoActiveStake, Unauthorized
from vault.state import StakeInfo
import vault.instructions as vi

U64_MAX: int = 2**64 - 1

Record = Union[Mint, TokenAccount, StakeInfo]


class VaultLedger:
    def __init__(self, program_id: Pubkey = VAULT_PROGRAM_ID):
        self.program_id = program_id
        self.accounts: Dict[Pubkey, Record] = {}
        (self.vault_address, self.vault_bump) = find_vault_address(program_id)

    def snapshot(self) -> Dict[Pubkey, Record]:
        # records are immutable, a shallow copy is a full checkpoint
        return dict(self.accounts)

    def restore(self, snapshot: Dict[Pubkey, Record]):
        self.accounts = dict(snapshot)

    def get(self, address: Pubkey) -> Optional[Record]:
        return self.accounts.get(address)

    def _mint(self, address: Pubkey) -> Mint:
        record = self.accounts.get(address)
        if not isinstance(record, Mint):
            raise InvalidAccount(f"{address} is not a mint")
        return record

    def _token_account(self, address: Pubkey) -> TokenAccount:
        record = self.accounts.get(address)
        if not isinstance(record, TokenAccount):
            raise InvalidAccount(f"{address} is not a token account")
        return record

    def _ensure_vacant(self, address: Pubkey):
        if address in self.accounts:
            raise AlreadyInitialized(f"{address} already holds account state")

    def stake_info(self, wallet: Pubkey) -> Optional[StakeInfo]:
        (address, _) = find_stake_info_address(self.program_id, wallet)
        record = self.accounts.get(address)
        return record if isinstance(record, StakeInfo) else None

    def token_balance(self, address: Pubkey) -> int:
        return self._token_account(address).amount

    def total_staked(self) -> int:
        return sum(record.amount_staked for record in self.accounts.values() if isinstance(record, StakeInfo))

    def custody_balance(self) -> int:
        """Tokens held by program-owned accounts: the vault and every escrow."""
        return sum(
            record.amount for address, record in self.accounts.items()
            if isinstance(record, TokenAccount) and record.owner == address
        )

    @property
    def is_initialized(self) -> bool:
        return self.vault_address in self.accounts

    # Token primitives

    def create_mint(
        self, address: Pubkey, decimals: int, mint_authority: Pubkey, freeze_authority: Optional[Pubkey] = None
    ) -> Mint:
        self._ensure_vacant(address)
        mint = Mint(mint_authority=mint_authority, supply=0, decimals=decimals, freeze_authority=freeze_authority)
        self.accounts[address] = mint
        return mint

    def create_token_account(self, address: Pubkey, mint: Pubkey, owner: Pubkey) -> TokenAccount:
        self._mint(mint)
        self._ensure_vacant(address)
        account = TokenAccount(mint=mint, owner=owner, amount=0)
        self.accounts[address] = account
        return account

    def mint_to(self, signers: AbstractSet[Pubkey], mint: Pubkey, destination: Pubkey, amount: int):
        mint_state = self._mint(mint)
        account = self._token_account(destination)
        if account.mint != mint:
            raise InvalidAccount(f"{destination} does not hold mint {mint}")
        if mint_state.mint_authority is None or mint_state.mint_authority not in signers:
            raise Unauthorized(f"Mint authority of {mint} did not sign")
        if mint_state.supply + amount > U64_MAX:
            raise InvalidAmount("Mint supply overflow")
        self.accounts[mint] = mint_state._replace(supply=mint_state.supply + amount)
        self.accounts[destination] = account._replace(amount=account.amount + amount)

    def transfer(self, signers: AbstractSet[Pubkey], source: Pubkey, destination: Pubkey, amount: int):
        if self._token_account(source).owner not in signers:
            raise Unauthorized(f"Owner of {source} did not sign")
        self._move(source, destination, amount)

    def _move(self, source: Pubkey, destination: Pubkey, amount: int):
        source_account = self._token_account(source)
        destination_account = self._token_account(destination)
        if source_account.mint != destination_account.mint:
            raise InvalidAccount(f"Mint mismatch between {source} and {destination}")
        if source_account.amount < amount:
            raise InsufficientFunds(f"{source} holds {source_account.amount}, needs {amount}")
        self.accounts[source] = source_account._replace(amount=source_account.amount - amount)
        destination_account = self._token_account(destination)
        self.accounts[destination] = destination_account._replace(amount=destination_account.amount + amount)

    # Protocol transitions

    def vault_mint(self) -> Optional[Pubkey]:
        record = self.accounts.get(self.vault_address)
        return record.mint if isinstance(record, TokenAccount) else None

    def initialize(self, signers: AbstractSet[Pubkey], payer: Pubkey, mint: Pubkey) -> Pubkey:
        """Creates the vault token account, owned by the program. Never idempotent."""
        if payer not in signers:
            raise Unauthorized(f"Payer {payer} did not sign")
        if self.is_initialized:
            raise AlreadyInitialized(f"Vault {self.vault_address} already initialized")
        self.create_token_account(self.vault_address, mint, self.vault_address)
        return self.vault_address

    def stake(
        self, signers: AbstractSet[Pubkey], wallet: Pubkey, user_token_account: Pubkey, amount: int
    ) -> StakeInfo:
        """Moves `amount` from the wallet's token account into its escrow."""
        if amount <= 0:
            raise InvalidAmount(f"Stake amount must be positive, got {amount}")
        if wallet not in signers:
            raise Unauthorized(f"Wallet {wallet} did not sign")
        source = self._token_account(user_token_account)
        if source.owner != wallet:
            raise Unauthorized(f"{user_token_account} is not owned by {wallet}")
        vault_mint = self.vault_mint()
        if vault_mint is not None and source.mint != vault_mint:
            raise InvalidAccount(f"{user_token_account} does not hold the vault mint")
        if source.amount < amount:
            raise InsufficientFunds(f"{user_token_account} holds {source.amount}, needs {amount}")

        (info_address, bump) = find_stake_info_address(self.program_id, wallet)
        (escrow_address, _) = find_stake_account_address(self.program_id, wallet)
        info = self.stake_info(wallet)
        if info is None:
            info = StakeInfo(owner=wallet, amount_staked=0, bump=bump)
        if escrow_address not in self.accounts:
            self.create_token_account(escrow_address, source.mint, escrow_address)
        elif self._token_account(escrow_address).mint != source.mint:
            raise InvalidAccount(f"Escrow {escrow_address} holds another mint")
        if info.amount_staked + amount > U64_MAX:
            raise InvalidAmount("Staked amount overflow")

        self._move(user_token_account, escrow_address, amount)
        info = info._replace(amount_staked=info.amount_staked + amount)
        self.accounts[info_address] = info
        return info

    def destake(self, signers: AbstractSet[Pubkey], wallet: Pubkey, user_token_account: Pubkey) -> int:
        """Returns the wallet's whole stake from escrow and resets its record."""
        if wallet not in signers:
            raise Unauthorized(f"Wallet {wallet} did not sign")
        info = self.stake_info(wallet)
        if info is None or not info.is_staked:
            raise NoActiveStake(f"Nothing staked for {wallet}")
        destination = self._token_account(user_token_account)
        if destination.owner != wallet:
            raise Unauthorized(f"{user_token_account} is not owned by {wallet}")

        (info_address, _) = find_stake_info_address(self.program_id, wallet)
        (escrow_address, _) = find_stake_account_address(self.program_id, wallet)
        amount = info.amount_staked
        self._move(escrow_address, user_token_account, amount)
        self.accounts[info_address] = info._replace(amount_staked=0)
        return amount

    def execute(self, instruction: Instruction, signers: AbstractSet[Pubkey]):
        """Applies one vault program instruction, checking every derived address it names."""
        if instruction.program_id != self.program_id:
            raise InvalidAccount(f"Instruction for program {instruction.program_id}")
        instruction_type = vi.decode_instruction_type(instruction)
        if instruction_type == vi.InstructionType.INITIALIZE:
            init = vi.decode_initialize(instruction)
            if init.token_vault_account != self.vault_address:
                raise InvalidAccount(f"{init.token_vault_account} is not the vault address")
            self.initialize(signers, init.signer, init.mint)
        elif instruction_type == vi.InstructionType.STAKE:
            params = vi.decode_stake(instruction)
            self._check_wallet_accounts(params.signer, params.stake_info_account, params.stake_account)
            self._check_mint(params.mint, params.user_token_account)
            self.stake(signers, params.signer, params.user_token_account, params.amount)
        elif instruction_type == vi.InstructionType.DESTAKE:
            params = vi.decode_destake(instruction)
            if params.token_vault_account != self.vault_address:
                raise InvalidAccount(f"{params.token_vault_account} is not the vault address")
            self._check_wallet_accounts(params.signer, params.stake_info_account, params.stake_account)
            self._check_mint(params.mint, params.user_token_account)
            self.destake(signers, params.signer, params.user_token_account)

    def _check_wallet_accounts(self, wallet: Pubkey, stake_info_account: Pubkey, stake_account: Pubkey):
        if stake_info_account != find_stake_info_address(self.program_id, wallet)[0]:
            raise InvalidAccount(f"{stake_info_account} is not the stake record of {wallet}")
        if stake_account != find_stake_account_address(self.program_id, wallet)[0]:
            raise InvalidAccount(f"{stake_account} is not the escrow of {wallet}")

    def _check_mint(self, mint: Pubkey, user_token_account: Pubkey):
        self._mint(mint)
        if self._token_account(user_token_account).mint != mint:
            raise InvalidAccount(f"{user_token_account} does not hold mint {mint}")
