"""In-process ledger.

`LocalBank` implements the `LedgerClient` capability without a validator. It
verifies signatures and blockhash age, charges fees, and applies each
transaction atomically: the system, SPL token, associated token and token
metadata programs are interpreted here, the staking vault program is handed to
`VaultLedger`. A failing instruction rolls back the whole transaction, which is
reported the way a failed preflight simulation is. Every processed transaction
produces a new block.
"""

from typing import AbstractSet, Dict, List, Optional, Tuple

from solana.constants import SYSTEM_PROGRAM_ID
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.message import MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
import solders.system_program as sys
from spl.token._layouts import InstructionType as TokenInstructionType
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
import spl.token.instructions as spl_token

from spl_token.state import ACCOUNT_LAYOUT, MINT_LAYOUT, Mint
from token_metadata.constants import MAX_METADATA_LEN, METADATA_PROGRAM_ID, find_metadata_account
from transaction.builder import FreshnessToken
from transaction.client import LedgerRejection
from transaction.signing import SignedTransaction
from vault.constants import VAULT_PROGRAM_ID
from vault.errors import VaultError
from vault.ledger import VaultLedger

LAMPORTS_PER_SIGNATURE: int = 5_000
"""Fee charged to the payer for each required signature."""

MAX_PROCESSING_AGE: int = 150
"""Number of blocks a blockhash stays valid."""

ACCOUNT_STORAGE_OVERHEAD: int = 128
"""Bytes of metadata charged for on top of every account's data."""

LAMPORTS_PER_BYTE_YEAR: int = 3_480
"""Rent rate."""

EXEMPTION_THRESHOLD_YEARS: int = 2
"""Years of rent an account must hold to be rent exempt."""


class ProgramError(Exception):
    """Failure of one of the natively interpreted programs."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class SystemProgramError(ProgramError):
    ACCOUNT_ALREADY_IN_USE = 0
    RESULT_WITH_NEGATIVE_LAMPORTS = 1
    MISSING_REQUIRED_SIGNATURE = 2


class TokenError(ProgramError):
    INSUFFICIENT_FUNDS = 1
    INVALID_MINT = 2
    MINT_MISMATCH = 3
    OWNER_MISMATCH = 4
    ALREADY_IN_USE = 6
    INVALID_INSTRUCTION = 12


UNSUPPORTED_PROGRAM = 0xFFFF

INVALID_INSTRUCTION_DATA = 0xFFFE
"""Reported for instructions whose accounts or data cannot be decoded."""

SYSTEM_CREATE_ACCOUNT = 0
SYSTEM_TRANSFER = 2


def minimum_balance_for_rent_exemption(size: int) -> int:
    return (size + ACCOUNT_STORAGE_OVERHEAD) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD_YEARS


def decompile_instructions(message: MessageV0) -> List[Instruction]:
    """Rebuilds the instructions of a message without lookup tables."""
    keys = list(message.account_keys)
    header = message.header
    num_signers = header.num_required_signatures

    def is_writable(index: int) -> bool:
        if index < num_signers:
            return index < num_signers - header.num_readonly_signed_accounts
        return index < len(keys) - header.num_readonly_unsigned_accounts

    return [
        Instruction(
            program_id=keys[compiled.program_id_index],
            data=bytes(compiled.data),
            accounts=[
                AccountMeta(pubkey=keys[index], is_signer=index < num_signers, is_writable=is_writable(index))
                for index in compiled.accounts
            ],
        )
        for compiled in message.instructions
    ]


class LocalBank:
    def __init__(self, vault_program_id: Pubkey = VAULT_PROGRAM_ID):
        self.vault = VaultLedger(vault_program_id)
        self.lamports: Dict[Pubkey, int] = {}
        self.owners: Dict[Pubkey, Pubkey] = {}
        self.data: Dict[Pubkey, bytes] = {}
        self.block_height = 0
        self.blockhashes: Dict[Hash, int] = {}
        self.statuses: Dict[Signature, bool] = {}
        self.advance()

    @property
    def latest_blockhash(self) -> Hash:
        return self._blockhash(self.block_height)

    @staticmethod
    def _blockhash(height: int) -> Hash:
        return Hash.hash(height.to_bytes(8, 'little'))

    def advance(self, blocks: int = 1):
        """Produces `blocks` new blocks, each with a fresh blockhash."""
        for _ in range(blocks):
            self.block_height += 1
            self.blockhashes[self.latest_blockhash] = self.block_height + MAX_PROCESSING_AGE

    # LedgerClient

    async def get_account_info(self, address: Pubkey) -> Optional[bytes]:
        record = self.vault.get(address)
        if record is not None:
            return record.encode()
        if address in self.data:
            return self.data[address]
        if self.lamports.get(address, 0) > 0:
            return bytes()
        return None

    async def get_balance(self, address: Pubkey) -> int:
        return self.lamports.get(address, 0)

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        return minimum_balance_for_rent_exemption(size)

    async def get_freshness_token(self) -> FreshnessToken:
        blockhash = self.latest_blockhash
        return FreshnessToken(blockhash=blockhash, last_valid_block_height=self.blockhashes[blockhash])

    async def get_block_height(self) -> int:
        return self.block_height

    async def get_signature_status(self, signature: Signature) -> Optional[bool]:
        return self.statuses.get(signature)

    async def request_airdrop(self, address: Pubkey, lamports: int) -> Signature:
        self.lamports[address] = self.lamports.get(address, 0) + lamports
        signature = Signature.new_unique()
        self.statuses[signature] = True
        return signature

    async def submit(self, signed: SignedTransaction) -> Signature:
        transaction = signed.transaction
        message = transaction.message
        if not isinstance(message, MessageV0):
            raise LedgerRejection("Only version 0 messages are supported")
        last_valid = self.blockhashes.get(message.recent_blockhash)
        if last_valid is None or self.block_height > last_valid:
            raise LedgerRejection("Transaction simulation failed: Blockhash not found")
        signature = transaction.signatures[0]
        if signature in self.statuses:
            raise LedgerRejection("Transaction simulation failed: This transaction has already been processed")

        signers = self._verify_signatures(transaction.signatures, message)
        payer = message.account_keys[0]
        fee = LAMPORTS_PER_SIGNATURE * len(transaction.signatures)
        if self.lamports.get(payer, 0) < fee:
            raise LedgerRejection(
                "Transaction simulation failed: Attempt to debit an account but found no record of a prior credit.")

        checkpoint = self._checkpoint()
        self.lamports[payer] -= fee
        logs: List[str] = []
        for (index, instruction) in enumerate(decompile_instructions(message)):
            logs.append(f"Program {instruction.program_id} invoke [1]")
            try:
                self._process(instruction, signers)
            except (ProgramError, VaultError) as error:
                self._rollback(checkpoint)
                logs.append(f"Program log: {error.message}")
                logs.append(f"Program {instruction.program_id} failed: custom program error: {hex(error.code)}")
                raise LedgerRejection(
                    f"Transaction simulation failed: Error processing Instruction {index}: "
                    f"custom program error: {hex(error.code)}",
                    code=int(error.code),
                    logs=logs,
                ) from error
            logs.append(f"Program {instruction.program_id} success")
        self.statuses[signature] = True
        self.advance()
        return signature

    def _verify_signatures(self, signatures: List[Signature], message: MessageV0) -> AbstractSet[Pubkey]:
        num_signers = message.header.num_required_signatures
        if len(signatures) != num_signers:
            raise LedgerRejection("Transaction signature verification failure")
        message_bytes = to_bytes_versioned(message)
        signers = message.account_keys[:num_signers]
        for (signature, signer) in zip(signatures, signers):
            if not signature.verify(signer, message_bytes):
                raise LedgerRejection("Transaction signature verification failure")
        return frozenset(signers)

    def _checkpoint(self) -> Tuple:
        return (dict(self.lamports), dict(self.owners), dict(self.data), self.vault.snapshot())

    def _rollback(self, checkpoint: Tuple):
        (lamports, owners, data, vault_accounts) = checkpoint
        self.lamports = lamports
        self.owners = owners
        self.data = data
        self.vault.restore(vault_accounts)

    # Programs

    def _process(self, instruction: Instruction, signers: AbstractSet[Pubkey]):
        try:
            self._invoke(instruction, signers)
        except (ProgramError, VaultError):
            raise
        # decoders raise ValueError, construct errors or IndexError on malformed input
        except Exception as error:
            raise ProgramError(INVALID_INSTRUCTION_DATA, f"Invalid instruction data: {error}") from error

    def _invoke(self, instruction: Instruction, signers: AbstractSet[Pubkey]):
        program_id = instruction.program_id
        if program_id == SYSTEM_PROGRAM_ID:
            self._process_system(instruction, signers)
        elif program_id == TOKEN_PROGRAM_ID:
            self._process_token(instruction, signers)
        elif program_id == ASSOCIATED_TOKEN_PROGRAM_ID:
            self._process_associated_token(instruction, signers)
        elif program_id == METADATA_PROGRAM_ID:
            self._process_metadata(instruction, signers)
        elif program_id == self.vault.program_id:
            self.vault.execute(instruction, signers)
        else:
            raise ProgramError(UNSUPPORTED_PROGRAM, f"Unsupported program {program_id}")

    def _debit(self, source: Pubkey, lamports: int):
        balance = self.lamports.get(source, 0)
        if balance < lamports:
            raise SystemProgramError(
                SystemProgramError.RESULT_WITH_NEGATIVE_LAMPORTS,
                f"Transfer: insufficient lamports {balance}, need {lamports}",
            )
        self.lamports[source] = balance - lamports

    def _account_exists(self, address: Pubkey) -> bool:
        return self.lamports.get(address, 0) > 0 or address in self.data or self.vault.get(address) is not None

    def _process_system(self, instruction: Instruction, signers: AbstractSet[Pubkey]):
        instruction_type = int.from_bytes(bytes(instruction.data[:4]), 'little')
        if instruction_type == SYSTEM_CREATE_ACCOUNT:
            params = sys.decode_create_account(instruction)
            (source, destination) = (params['from_pubkey'], params['to_pubkey'])
            for signer in (source, destination):
                if signer not in signers:
                    raise SystemProgramError(SystemProgramError.MISSING_REQUIRED_SIGNATURE, f"{signer} must sign")
            if self._account_exists(destination):
                raise SystemProgramError(SystemProgramError.ACCOUNT_ALREADY_IN_USE, f"Create Account: account {destination} already in use")
            self._debit(source, params['lamports'])
            self.lamports[destination] = params['lamports']
            self.owners[destination] = params['owner']
            self.data[destination] = bytes(params['space'])
        elif instruction_type == SYSTEM_TRANSFER:
            params = sys.decode_transfer(instruction)
            (source, destination) = (params['from_pubkey'], params['to_pubkey'])
            if source not in signers:
                raise SystemProgramError(SystemProgramError.MISSING_REQUIRED_SIGNATURE, f"{source} must sign")
            self._debit(source, params['lamports'])
            self.lamports[destination] = self.lamports.get(destination, 0) + params['lamports']
        else:
            raise SystemProgramError(UNSUPPORTED_PROGRAM, f"Unsupported system instruction {instruction_type}")

    def _process_token(self, instruction: Instruction, signers: AbstractSet[Pubkey]):
        if not instruction.data:
            raise TokenError(TokenError.INVALID_INSTRUCTION, "Empty token instruction")
        instruction_type = instruction.data[0]
        if instruction_type in (TokenInstructionType.INITIALIZE_MINT, TokenInstructionType.INITIALIZE_MINT2):
            if instruction_type == TokenInstructionType.INITIALIZE_MINT:
                init = spl_token.decode_initialize_mint(instruction)
            else:
                init = spl_token.decode_initialize_mint2(instruction)
            if self.owners.get(init.mint) != TOKEN_PROGRAM_ID or len(self.data.get(init.mint, b'')) != MINT_LAYOUT.sizeof():
                raise TokenError(TokenError.INVALID_MINT, f"{init.mint} is not an allocated mint account")
            del self.data[init.mint]
            self.vault.create_mint(
                init.mint,
                decimals=init.decimals,
                mint_authority=init.mint_authority,
                freeze_authority=init.freeze_authority,
            )
        elif instruction_type == TokenInstructionType.MINT_TO:
            params = spl_token.decode_mint_to(instruction)
            self._check_mint_authority(params.mint, params.mint_authority, signers)
            self.vault.mint_to(signers, params.mint, params.dest, params.amount)
        elif instruction_type == TokenInstructionType.MINT_TO2:
            checked = spl_token.decode_mint_to_checked(instruction)
            self._check_decimals(checked.mint, checked.decimals)
            self._check_mint_authority(checked.mint, checked.mint_authority, signers)
            self.vault.mint_to(signers, checked.mint, checked.dest, checked.amount)
        elif instruction_type == TokenInstructionType.TRANSFER:
            transfer = spl_token.decode_transfer(instruction)
            self.vault.transfer(signers, transfer.source, transfer.dest, transfer.amount)
        elif instruction_type == TokenInstructionType.TRANSFER2:
            transfer_checked = spl_token.decode_transfer_checked(instruction)
            self._check_decimals(transfer_checked.mint, transfer_checked.decimals)
            self.vault.transfer(signers, transfer_checked.source, transfer_checked.dest, transfer_checked.amount)
        else:
            raise TokenError(TokenError.INVALID_INSTRUCTION, f"Unsupported token instruction {instruction_type}")

    def _mint_record(self, mint: Pubkey) -> Mint:
        record = self.vault.get(mint)
        if not isinstance(record, Mint):
            raise TokenError(TokenError.INVALID_MINT, f"{mint} is not a mint")
        return record

    def _check_decimals(self, mint: Pubkey, decimals: int):
        record = self._mint_record(mint)
        if decimals != record.decimals:
            raise TokenError(TokenError.MINT_MISMATCH, f"Mint {mint} has {record.decimals} decimals")

    def _check_mint_authority(self, mint: Pubkey, authority: Pubkey, signers: AbstractSet[Pubkey]):
        if authority != self._mint_record(mint).mint_authority or authority not in signers:
            raise TokenError(TokenError.OWNER_MISMATCH, f"Mint authority {authority} must sign")

    def _process_associated_token(self, instruction: Instruction, signers: AbstractSet[Pubkey]):
        (payer, associated_account, owner, mint) = [meta.pubkey for meta in instruction.accounts[:4]]
        idempotent = bool(instruction.data) and instruction.data[0] == 1
        if associated_account != spl_token.get_associated_token_address(owner, mint):
            raise TokenError(TokenError.OWNER_MISMATCH, f"{associated_account} is not the associated account")
        if self.vault.get(associated_account) is not None:
            if idempotent:
                return
            raise TokenError(TokenError.ALREADY_IN_USE, f"{associated_account} already in use")
        if payer not in signers:
            raise SystemProgramError(SystemProgramError.MISSING_REQUIRED_SIGNATURE, f"{payer} must sign")
        rent = minimum_balance_for_rent_exemption(ACCOUNT_LAYOUT.sizeof())
        self._debit(payer, rent)
        self.lamports[associated_account] = self.lamports.get(associated_account, 0) + rent
        self.owners[associated_account] = TOKEN_PROGRAM_ID
        self.vault.create_token_account(associated_account, mint, owner)

    def _process_metadata(self, instruction: Instruction, signers: AbstractSet[Pubkey]):
        (metadata, mint, mint_authority, payer) = [meta.pubkey for meta in instruction.accounts[:4]]
        if metadata != find_metadata_account(mint)[0]:
            raise TokenError(TokenError.INVALID_MINT, f"{metadata} is not the metadata account of {mint}")
        self._check_mint_authority(mint, mint_authority, signers)
        if payer not in signers:
            raise SystemProgramError(SystemProgramError.MISSING_REQUIRED_SIGNATURE, f"{payer} must sign")
        if self._account_exists(metadata):
            raise SystemProgramError(SystemProgramError.ACCOUNT_ALREADY_IN_USE, f"{metadata} already in use")
        rent = minimum_balance_for_rent_exemption(MAX_METADATA_LEN)
        self._debit(payer, rent)
        self.lamports[metadata] = rent
        self.owners[metadata] = METADATA_PROGRAM_ID
        # keeps the encoded arguments, not the full metadata account layout
        self.data[metadata] = bytes(instruction.data)
