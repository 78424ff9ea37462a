from solders.keypair import Keypair
from solders.signature import Signature

from spl_token.actions import create_mint_instructions
from spl_token.state import MINT_LAYOUT
from token_metadata.constants import find_metadata_account
from token_metadata.instructions import CreateMetadataAccountV3Params, TokenMetadata, create_metadata_account_v3
from transaction.errors import SubmissionRejected, SubmissionTimeout
from transaction.submission import SubmissionClient


async def create_token_with_metadata(
    client: SubmissionClient, payer: Keypair, mint: Keypair,
    token_metadata: TokenMetadata, decimals: int = 2,
) -> Signature:
    """Creates a mint and its metadata account in one transaction, with `payer` as every authority."""
    mint_balance = await client.ledger.get_minimum_balance_for_rent_exemption(MINT_LAYOUT.sizeof())
    (metadata_account, _) = find_metadata_account(mint.pubkey())
    print(f"Creating token {token_metadata.symbol} with mint {mint.pubkey()}")
    instructions = create_mint_instructions(
        payer.pubkey(), mint.pubkey(), payer.pubkey(), decimals, mint_balance, freeze_authority=payer.pubkey())
    instructions.append(
        create_metadata_account_v3(
            CreateMetadataAccountV3Params(
                metadata=metadata_account,
                mint=mint.pubkey(),
                mint_authority=payer.pubkey(),
                payer=payer.pubkey(),
                update_authority=payer.pubkey(),
                token_metadata=token_metadata,
            )
        )
    )
    try:
        return await client.send(instructions, payer, mint)
    except SubmissionRejected as error:
        print(f"Failed to create token {token_metadata.symbol}: {error.message}")
        if error.signature:
            print(f"Failed signature: {error.signature}")
        raise
    except SubmissionTimeout as error:
        print(f"Token creation outcome unknown, check signature {error.possible_signature}")
        raise
