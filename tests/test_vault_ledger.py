import pytest
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from vault.constants import VAULT_PROGRAM_ID, find_stake_account_address, find_stake_info_address, \
    find_vault_address
from vault.errors import AlreadyInitialized, InsufficientFunds, InvalidAccount, InvalidAmount, \
    NoActiveStake, Unauthorized
from vault.ledger import VaultLedger
import vault.instructions as vi

BALANCE = 1_000_000_000


class Vault:
    """A ledger with one initialized vault and a mint authority able to fund wallets."""

    def __init__(self):
        self.ledger = VaultLedger(VAULT_PROGRAM_ID)
        self.authority = Keypair().pubkey()
        self.mint = Keypair().pubkey()
        self.ledger.create_mint(self.mint, 9, self.authority)
        self.ledger.initialize({self.authority}, self.authority, self.mint)

    def fund(self, amount: int = BALANCE):
        wallet = Keypair().pubkey()
        token_account = Keypair().pubkey()
        self.ledger.create_token_account(token_account, self.mint, wallet)
        self.ledger.mint_to({self.authority}, self.mint, token_account, amount)
        return wallet, token_account

    def escrow(self, wallet: Pubkey) -> int:
        (address, _) = find_stake_account_address(VAULT_PROGRAM_ID, wallet)
        return self.ledger.token_balance(address)

    def check_conservation(self):
        assert self.ledger.custody_balance() == self.ledger.total_staked()


@pytest.fixture
def vault() -> Vault:
    return Vault()


def test_initialize_twice(vault):
    assert vault.ledger.is_initialized
    assert vault.ledger.vault_mint() == vault.mint
    with pytest.raises(AlreadyInitialized):
        vault.ledger.initialize({vault.authority}, vault.authority, vault.mint)


def test_initialize_requires_payer_signature():
    ledger = VaultLedger(VAULT_PROGRAM_ID)
    mint = Keypair().pubkey()
    payer = Keypair().pubkey()
    ledger.create_mint(mint, 9, payer)
    with pytest.raises(Unauthorized):
        ledger.initialize(set(), payer, mint)
    assert not ledger.is_initialized


def test_stake_and_destake(vault):
    (wallet, token_account) = vault.fund()

    info = vault.ledger.stake({wallet}, wallet, token_account, 1)
    assert info.owner == wallet
    assert info.amount_staked == 1
    assert info.bump == find_stake_info_address(VAULT_PROGRAM_ID, wallet)[1]
    assert vault.ledger.token_balance(token_account) == BALANCE - 1
    assert vault.escrow(wallet) == 1
    vault.check_conservation()

    with pytest.raises(InsufficientFunds):
        vault.ledger.stake({wallet}, wallet, token_account, 2 * BALANCE)
    assert vault.ledger.token_balance(token_account) == BALANCE - 1

    assert vault.ledger.destake({wallet}, wallet, token_account) == 1
    assert vault.ledger.token_balance(token_account) == BALANCE
    assert vault.escrow(wallet) == 0
    assert vault.ledger.stake_info(wallet).amount_staked == 0
    vault.check_conservation()


def test_repeated_stakes_accumulate(vault):
    (wallet, token_account) = vault.fund()
    vault.ledger.stake({wallet}, wallet, token_account, 10)
    vault.ledger.stake({wallet}, wallet, token_account, 15)
    assert vault.ledger.stake_info(wallet).amount_staked == 25
    assert vault.escrow(wallet) == 25
    assert vault.ledger.destake({wallet}, wallet, token_account) == 25


def test_stake_entire_balance(vault):
    (wallet, token_account) = vault.fund()
    vault.ledger.stake({wallet}, wallet, token_account, BALANCE)
    assert vault.ledger.token_balance(token_account) == 0
    vault.check_conservation()


@pytest.mark.parametrize("amount", [0, -1])
def test_stake_invalid_amount(vault, amount):
    (wallet, token_account) = vault.fund()
    with pytest.raises(InvalidAmount):
        vault.ledger.stake({wallet}, wallet, token_account, amount)
    assert vault.ledger.stake_info(wallet) is None


def test_destake_without_stake(vault):
    (wallet, token_account) = vault.fund()
    with pytest.raises(NoActiveStake):
        vault.ledger.destake({wallet}, wallet, token_account)


def test_destake_twice(vault):
    (wallet, token_account) = vault.fund()
    vault.ledger.stake({wallet}, wallet, token_account, 5)
    vault.ledger.destake({wallet}, wallet, token_account)
    with pytest.raises(NoActiveStake):
        vault.ledger.destake({wallet}, wallet, token_account)


def test_stake_requires_wallet_signature(vault):
    (wallet, token_account) = vault.fund()
    with pytest.raises(Unauthorized):
        vault.ledger.stake({vault.authority}, wallet, token_account, 1)


def test_stake_from_foreign_token_account(vault):
    (wallet, _) = vault.fund()
    (_, other_token_account) = vault.fund()
    with pytest.raises(Unauthorized):
        vault.ledger.stake({wallet}, wallet, other_token_account, 1)


def test_stake_other_mint(vault):
    wallet = Keypair().pubkey()
    other_mint = Keypair().pubkey()
    token_account = Keypair().pubkey()
    vault.ledger.create_mint(other_mint, 9, vault.authority)
    vault.ledger.create_token_account(token_account, other_mint, wallet)
    vault.ledger.mint_to({vault.authority}, other_mint, token_account, 10)
    with pytest.raises(InvalidAccount):
        vault.ledger.stake({wallet}, wallet, token_account, 1)


def test_wallets_are_isolated(vault):
    (first, first_account) = vault.fund()
    (second, second_account) = vault.fund()
    vault.ledger.stake({first}, first, first_account, 100)
    vault.ledger.stake({second}, second, second_account, 7)
    assert vault.ledger.destake({first}, first, first_account) == 100
    assert vault.escrow(second) == 7
    assert vault.ledger.stake_info(second).amount_staked == 7
    assert vault.ledger.total_staked() == 7
    vault.check_conservation()


def test_snapshot_restore(vault):
    (wallet, token_account) = vault.fund()
    snapshot = vault.ledger.snapshot()
    vault.ledger.stake({wallet}, wallet, token_account, 3)
    vault.ledger.restore(snapshot)
    assert vault.ledger.stake_info(wallet) is None
    assert vault.ledger.token_balance(token_account) == BALANCE


def test_mint_to_requires_authority(vault):
    (_, token_account) = vault.fund(0)
    with pytest.raises(Unauthorized):
        vault.ledger.mint_to(set(), vault.mint, token_account, 1)


def test_destake_requires_wallet_signature(vault):
    (wallet, token_account) = vault.fund()
    vault.ledger.stake({wallet}, wallet, token_account, 5)
    with pytest.raises(Unauthorized):
        vault.ledger.destake({vault.authority}, wallet, token_account)
    assert vault.escrow(wallet) == 5


def test_destake_to_foreign_token_account(vault):
    (wallet, token_account) = vault.fund()
    (_, other_token_account) = vault.fund()
    vault.ledger.stake({wallet}, wallet, token_account, 5)
    with pytest.raises(Unauthorized):
        vault.ledger.destake({wallet}, wallet, other_token_account)
    assert vault.escrow(wallet) == 5
    assert vault.ledger.token_balance(other_token_account) == BALANCE


def stake_instruction(vault, wallet, token_account, amount=1, **accounts):
    params = vi.StakeParams(
        program_id=VAULT_PROGRAM_ID,
        signer=wallet,
        stake_info_account=find_stake_info_address(VAULT_PROGRAM_ID, wallet)[0],
        stake_account=find_stake_account_address(VAULT_PROGRAM_ID, wallet)[0],
        user_token_account=token_account,
        mint=vault.mint,
        amount=amount,
    )
    return vi.stake(params._replace(**accounts))


def test_execute_stake(vault):
    (wallet, token_account) = vault.fund()
    vault.ledger.execute(stake_instruction(vault, wallet, token_account, 7), {wallet})
    assert vault.ledger.stake_info(wallet).amount_staked == 7
    assert vault.escrow(wallet) == 7


@pytest.mark.parametrize("account", ["stake_info_account", "stake_account"])
def test_execute_rejects_wrong_derived_address(vault, account):
    (wallet, token_account) = vault.fund()
    instruction = stake_instruction(vault, wallet, token_account, **{account: Keypair().pubkey()})
    with pytest.raises(InvalidAccount):
        vault.ledger.execute(instruction, {wallet})
    assert vault.ledger.stake_info(wallet) is None
    assert vault.ledger.token_balance(token_account) == BALANCE


def test_execute_rejects_wrong_vault_address(vault):
    (wallet, token_account) = vault.fund()
    vault.ledger.stake({wallet}, wallet, token_account, 5)
    instruction = vi.destake(
        vi.DestakeParams(
            program_id=VAULT_PROGRAM_ID,
            signer=wallet,
            token_vault_account=Keypair().pubkey(),
            stake_info_account=find_stake_info_address(VAULT_PROGRAM_ID, wallet)[0],
            stake_account=find_stake_account_address(VAULT_PROGRAM_ID, wallet)[0],
            user_token_account=token_account,
            mint=vault.mint,
        )
    )
    with pytest.raises(InvalidAccount):
        vault.ledger.execute(instruction, {wallet})
    assert vault.escrow(wallet) == 5


def test_execute_rejects_missing_accounts(vault):
    (wallet, token_account) = vault.fund()
    full = stake_instruction(vault, wallet, token_account)
    truncated = Instruction(full.program_id, full.data, full.accounts[:vi.STAKE_ACCOUNTS - 1])
    with pytest.raises(InvalidAccount):
        vault.ledger.execute(truncated, {wallet})
    initialize = vi.initialize(
        vi.InitializeParams(
            program_id=VAULT_PROGRAM_ID,
            signer=vault.authority,
            token_vault_account=find_vault_address(VAULT_PROGRAM_ID)[0],
            mint=vault.mint,
        )
    )
    with pytest.raises(InvalidAccount):
        vault.ledger.execute(Instruction(initialize.program_id, initialize.data, initialize.accounts[:1]), set())
