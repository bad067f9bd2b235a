import pytest
from solders.pubkey import Pubkey

from farming_client.pda import (
    find_program_address,
    pool_pda,
    user_pda,
    vault_pdas,
)


def test_matches_native_derivation(program_id):
    seeds = [b"staking", bytes(Pubkey.new_unique())]
    address, bump = find_program_address(seeds, program_id)
    assert (address, bump) == Pubkey.find_program_address(seeds, program_id)
    assert not address.is_on_curve()


def test_derivation_is_deterministic(program_id):
    seeds = [b"reward_a", bytes(Pubkey.new_unique())]
    assert find_program_address(seeds, program_id) == find_program_address(list(seeds), program_id)


def test_pool_address_scenario(program_id):
    m1, m2, m3, base = (Pubkey.new_unique() for _ in range(4))
    derived = pool_pda(program_id, 86400, m1, m2, m3, base)
    expected = Pubkey.find_program_address(
        [(86400).to_bytes(8, "big"), bytes(m1), bytes(m2), bytes(m3), bytes(base)], program_id
    )
    assert (derived.address, derived.bump) == expected
    assert pool_pda(program_id, 86400, m1, m2, m3, base) == derived


def test_reward_duration_changes_pool_address(program_id):
    mints = [Pubkey.new_unique() for _ in range(4)]
    assert pool_pda(program_id, 86400, *mints).address != pool_pda(program_id, 86401, *mints).address


def test_vault_addresses_are_pairwise_distinct(program_id):
    pool = Pubkey.new_unique()
    vaults = vault_pdas(program_id, pool)
    addresses = {v.address for v in vaults}
    assert len(addresses) == 3
    assert vaults.staking_vault.address == Pubkey.find_program_address([b"staking", bytes(pool)], program_id)[0]
    assert vaults.reward_b_vault.address == Pubkey.find_program_address([b"reward_b", bytes(pool)], program_id)[0]


def test_user_address_seeds_are_pool_then_owner(program_id):
    pool, owner = Pubkey.new_unique(), Pubkey.new_unique()
    derived = user_pda(program_id, pool, owner)
    assert derived.address == Pubkey.find_program_address([bytes(pool), bytes(owner)], program_id)[0]
    assert derived.address != user_pda(program_id, owner, pool).address


def test_oversized_seed_is_rejected(program_id):
    with pytest.raises(ValueError):
        find_program_address([bytes(33)], program_id)
