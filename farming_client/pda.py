"""Deterministic program-derived addresses used by the farming program.

Every address here is a pure function of the program id and its seeds, so
callers recompute them on demand instead of storing them anywhere.
"""

import hashlib
from typing import NamedTuple, Sequence, Tuple

from solders.pubkey import Pubkey

MAX_SEED_LEN = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"

STAKING_VAULT_SEED = b"staking"
REWARD_A_VAULT_SEED = b"reward_a"
REWARD_B_VAULT_SEED = b"reward_b"


class DerivedAddress(NamedTuple):
    address: Pubkey
    bump: int


class VaultAddresses(NamedTuple):
    staking_vault: DerivedAddress
    reward_a_vault: DerivedAddress
    reward_b_vault: DerivedAddress


def find_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> DerivedAddress:
    """Search bumps 255..0 for the first hash that is not a valid ed25519 point.

    The extra bump seed makes the search bounded: at most 256 candidates are
    hashed and the first off-curve one is canonical.
    """
    if len(seeds) + 1 > MAX_SEEDS:
        raise ValueError(f"At most {MAX_SEEDS - 1} seeds are allowed, got {len(seeds)}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(f"Seed longer than {MAX_SEED_LEN} bytes: {len(seed)}")
    program_bytes = bytes(program_id)
    for bump in range(255, -1, -1):
        hasher = hashlib.sha256()
        for seed in seeds:
            hasher.update(seed)
        hasher.update(bytes([bump]))
        hasher.update(program_bytes)
        hasher.update(PDA_MARKER)
        candidate = Pubkey.from_bytes(hasher.digest())
        if not candidate.is_on_curve():
            return DerivedAddress(candidate, bump)
    raise ValueError("Unable to find a viable program address bump seed")


def pool_seeds(
    reward_duration: int,
    staking_mint: Pubkey,
    reward_a_mint: Pubkey,
    reward_b_mint: Pubkey,
    base: Pubkey,
) -> Tuple[bytes, ...]:
    return (
        reward_duration.to_bytes(8, "big"),
        bytes(staking_mint),
        bytes(reward_a_mint),
        bytes(reward_b_mint),
        bytes(base),
    )


def pool_pda(
    program_id: Pubkey,
    reward_duration: int,
    staking_mint: Pubkey,
    reward_a_mint: Pubkey,
    reward_b_mint: Pubkey,
    base: Pubkey,
) -> DerivedAddress:
    return find_program_address(
        pool_seeds(reward_duration, staking_mint, reward_a_mint, reward_b_mint, base), program_id
    )


def staking_vault_pda(program_id: Pubkey, pool: Pubkey) -> DerivedAddress:
    return find_program_address([STAKING_VAULT_SEED, bytes(pool)], program_id)


def reward_a_vault_pda(program_id: Pubkey, pool: Pubkey) -> DerivedAddress:
    return find_program_address([REWARD_A_VAULT_SEED, bytes(pool)], program_id)


def reward_b_vault_pda(program_id: Pubkey, pool: Pubkey) -> DerivedAddress:
    return find_program_address([REWARD_B_VAULT_SEED, bytes(pool)], program_id)


def vault_pdas(program_id: Pubkey, pool: Pubkey) -> VaultAddresses:
    return VaultAddresses(
        staking_vault=staking_vault_pda(program_id, pool),
        reward_a_vault=reward_a_vault_pda(program_id, pool),
        reward_b_vault=reward_b_vault_pda(program_id, pool),
    )


def user_pda(program_id: Pubkey, pool: Pubkey, owner: Pubkey) -> DerivedAddress:
    return find_program_address([bytes(pool), bytes(owner)], program_id)
