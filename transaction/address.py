"""Program derived addresses."""

from typing import Sequence, Tuple

from solders.pubkey import Pubkey

from transaction.errors import AddressDerivationFailure

MAX_SEEDS: int = 16
"""Maximum number of seeds, bump included."""

MAX_SEED_LEN: int = 32
"""Maximum length in bytes of a single seed."""


def _check_seeds(seeds: Sequence[bytes], max_seeds: int):
    if len(seeds) > max_seeds:
        raise AddressDerivationFailure(f"Too many seeds: {len(seeds)} > {max_seeds}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise AddressDerivationFailure(f"Seed too long: {len(seed)} > {MAX_SEED_LEN} bytes")


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    """Hashes the seeds into an address, failing if it lands on the ed25519 curve."""
    _check_seeds(seeds, MAX_SEEDS)
    try:
        return Pubkey.create_program_address(list(seeds), program_id)
    # solders raises PubkeyError here, which it does not export
    except Exception as error:
        raise AddressDerivationFailure(f"Invalid seeds for program {program_id}: {error}") from error


def find_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """Finds the first off-curve address for the seeds, trying bumps from 255 down to 0.

    Gives the same result as `Pubkey.find_program_address`, but an exhausted
    search raises `AddressDerivationFailure` instead of aborting.
    """
    _check_seeds(seeds, MAX_SEEDS - 1)
    for bump in range(255, -1, -1):
        try:
            return create_program_address([*seeds, bytes([bump])], program_id), bump
        except AddressDerivationFailure:
            continue
    raise AddressDerivationFailure(f"Unable to find a viable bump for program {program_id}")
