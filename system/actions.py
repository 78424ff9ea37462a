from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solana.constants import SYSTEM_PROGRAM_ID
import solders.system_program as sys

from transaction.client import LedgerClient
from transaction.submission import SubmissionClient


async def airdrop(client: LedgerClient, receiver: Pubkey, lamports: int) -> Signature:
    print(f"Airdropping {lamports} lamports to {receiver}...")
    return await client.request_airdrop(receiver, lamports)


async def create_account(client: SubmissionClient, payer: Keypair, new_account: Keypair, space: int = 0) -> Signature:
    """Creates a system-owned account, signed by the payer and the new account."""
    lamports = await client.ledger.get_minimum_balance_for_rent_exemption(space)
    print(f"Creating account {new_account.pubkey()} with {lamports} lamports")
    create_account_ix = sys.create_account(
        sys.CreateAccountParams(
            from_pubkey=payer.pubkey(),
            to_pubkey=new_account.pubkey(),
            lamports=lamports,
            space=space,
            owner=SYSTEM_PROGRAM_ID,
        )
    )
    return await client.send([create_account_ix], payer, new_account)


async def transfer_round_trip(
    client: SubmissionClient, payer: Keypair, test_wallet: Keypair, extra_lamports: int = 100_000
) -> Signature:
    """Funds `test_wallet`, sends it more lamports and has it send them back, all in one transaction.

    The transfers only make sense once the first instruction has created the
    wallet, so the instructions stay in this order.
    """
    balance_for_rent = await client.ledger.get_minimum_balance_for_rent_exemption(0)
    round_trip_lamports = balance_for_rent + extra_lamports
    instructions = [
        sys.create_account(
            sys.CreateAccountParams(
                from_pubkey=payer.pubkey(),
                to_pubkey=test_wallet.pubkey(),
                lamports=balance_for_rent + 2_000_000,
                space=0,
                owner=SYSTEM_PROGRAM_ID,
            )
        ),
        sys.transfer(
            sys.TransferParams(
                from_pubkey=payer.pubkey(),
                to_pubkey=test_wallet.pubkey(),
                lamports=round_trip_lamports,
            )
        ),
        sys.transfer(
            sys.TransferParams(
                from_pubkey=test_wallet.pubkey(),
                to_pubkey=payer.pubkey(),
                lamports=round_trip_lamports,
            )
        ),
    ]
    print(f"Sending {round_trip_lamports} lamports to {test_wallet.pubkey()} and back")
    return await client.send(instructions, payer, test_wallet)
