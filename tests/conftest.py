"""Shared fixtures: an in-memory RPC that stores accounts and applies a tiny subset of program effects."""

from dataclasses import replace
from types import SimpleNamespace
from typing import Dict, List, Optional, Set

import pytest
from solana.rpc.core import RPCException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from farming_client.accounts import (
    POOL_DISCRIMINATOR,
    SYSVAR_CLOCK_PUBKEY,
    USER_DISCRIMINATOR,
    PoolLayout,
    PoolState,
    UserLayout,
    UserState,
    parse_pool_account,
)
from farming_client.instructions import sighash
from farming_client.rewards import PRECISION

TOKEN_ACCOUNT_SIZE = 165


def _raw(value):
    if isinstance(value, Pubkey):
        return list(bytes(value))
    if isinstance(value, tuple):
        return [_raw(v) for v in value]
    return value


def make_pool(**overrides) -> PoolState:
    fields = dict(
        authority=Pubkey.new_unique(),
        paused=False,
        staking_mint=Pubkey.new_unique(),
        staking_vault=Pubkey.new_unique(),
        reward_a_mint=Pubkey.new_unique(),
        reward_a_vault=Pubkey.new_unique(),
        reward_b_mint=Pubkey.new_unique(),
        reward_b_vault=Pubkey.new_unique(),
        base_key=Pubkey.new_unique(),
        reward_duration=86400,
        reward_duration_end=0,
        last_update_time=0,
        legacy_reward_a_rate=0,
        legacy_reward_b_rate=0,
        reward_a_per_token_stored=0,
        reward_b_per_token_stored=0,
        user_stake_count=0,
        funders=(Pubkey.default(), Pubkey.default(), Pubkey.default()),
        reward_a_rate=0,
        reward_b_rate=0,
        pool_bump=255,
        total_staked=0,
    )
    fields.update(overrides)
    return PoolState(**fields)


def make_user(**overrides) -> UserState:
    fields = dict(
        pool=Pubkey.new_unique(),
        owner=Pubkey.new_unique(),
        reward_a_per_token_complete=0,
        reward_b_per_token_complete=0,
        reward_a_per_token_pending=0,
        reward_b_per_token_pending=0,
        balance_staked=0,
        nonce=254,
    )
    fields.update(overrides)
    return UserState(**fields)


def encode_pool(pool: PoolState) -> bytes:
    return POOL_DISCRIMINATOR + PoolLayout.build({k: _raw(v) for k, v in vars(pool).items()})


def encode_user(user: UserState) -> bytes:
    return USER_DISCRIMINATOR + UserLayout.build({k: _raw(v) for k, v in vars(user).items()})


class FakeRpc:
    """Enough of solana.rpc.api.Client for the farming client, backed by a dict of accounts."""

    def __init__(self, program_id: Pubkey):
        self.program_id = program_id
        self.accounts: Dict[Pubkey, SimpleNamespace] = {}
        self.sent: List[VersionedTransaction] = []
        self.reject: Set[Pubkey] = set()
        self.confirm_error: Optional[str] = None
        self.confirm_raises: List[Exception] = []

    def set_account(self, address: Pubkey, data: bytes, owner: Optional[Pubkey] = None) -> None:
        self.accounts[address] = SimpleNamespace(data=data, owner=owner or self.program_id)

    def set_pool(self, address: Pubkey, pool: PoolState) -> None:
        self.set_account(address, encode_pool(pool))

    def set_user(self, address: Pubkey, user: UserState) -> None:
        self.set_account(address, encode_user(user))

    def set_clock(self, unix_timestamp: int) -> None:
        data = bytes(32) + unix_timestamp.to_bytes(8, "little", signed=True)
        self.set_account(SYSVAR_CLOCK_PUBKEY, data, owner=Pubkey.default())

    def get_account_info(self, address, commitment=None, encoding="base64"):
        return SimpleNamespace(value=self.accounts.get(address))

    def get_multiple_accounts(self, addresses, commitment=None, encoding="base64"):
        return SimpleNamespace(value=[self.accounts.get(a) for a in addresses])

    def get_program_accounts(self, program_id, commitment=None, encoding="base64", filters=None):
        matches = []
        for address, info in self.accounts.items():
            if info.owner != program_id:
                continue
            if all(info.data[f.offset : f.offset + len(f.bytes)] == f.bytes for f in filters or []):
                matches.append(SimpleNamespace(pubkey=address, account=info))
        return SimpleNamespace(value=matches)

    def get_latest_blockhash(self, commitment=None):
        return SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default(), last_valid_block_height=1000))

    def send_raw_transaction(self, raw, opts=None):
        tx = VersionedTransaction.from_bytes(raw)
        keys = tx.message.account_keys
        rejected = self.reject.intersection(keys)
        if rejected:
            raise RPCException(f"custom program error: 0x1770 accounts={sorted(str(k) for k in rejected)}")
        self.sent.append(tx)
        for ci in tx.message.instructions:
            self._apply(keys[ci.program_id_index], [keys[i] for i in ci.accounts], bytes(ci.data))
        return SimpleNamespace(value=tx.signatures[0])

    def confirm_transaction(self, signature, commitment=None, last_valid_block_height=None):
        if self.confirm_raises:
            raise self.confirm_raises.pop(0)
        return SimpleNamespace(value=[SimpleNamespace(err=self.confirm_error)])

    def _apply(self, program: Pubkey, accounts: List[Pubkey], data: bytes) -> None:
        if program == ASSOCIATED_TOKEN_PROGRAM_ID:
            self.set_account(accounts[1], bytes(TOKEN_ACCOUNT_SIZE), owner=TOKEN_PROGRAM_ID)
        elif program == self.program_id and data[:8] == sighash("migrate_farming_rate"):
            pool = parse_pool_account(self.accounts[accounts[0]].data)
            migrated = replace(
                pool,
                reward_a_rate=pool.reward_a_rate or pool.legacy_reward_a_rate * PRECISION,
                reward_b_rate=pool.reward_b_rate or pool.legacy_reward_b_rate * PRECISION,
                legacy_reward_a_rate=0,
                legacy_reward_b_rate=0,
            )
            self.set_pool(accounts[0], migrated)


def instructions_of(tx: VersionedTransaction):
    """Decode a transaction into (program_id, [account pubkeys], data) triples."""
    keys = tx.message.account_keys
    return [
        (keys[ci.program_id_index], [keys[i] for i in ci.accounts], bytes(ci.data)) for ci in tx.message.instructions
    ]


@pytest.fixture
def program_id() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def rpc(program_id) -> FakeRpc:
    return FakeRpc(program_id)


@pytest.fixture
def payer() -> Keypair:
    return Keypair()
