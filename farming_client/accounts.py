from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from borsh_construct import Bool, CStruct, U8, U32, U64, U128
from solana.rpc.api import Client
from solana.rpc.types import MemcmpOpts
from solders.pubkey import Pubkey

from .errors import AddressNotFound, LayoutMismatch

logger = logging.getLogger(__name__)

SYSVAR_CLOCK_PUBKEY = Pubkey.from_string("SysvarC1ock11111111111111111111111111111111")
DISCRIMINATOR_LEN = 8
MULTIPLE_ACCOUNTS_CHUNK = 100


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode()).digest()[:8]


POOL_DISCRIMINATOR = account_discriminator("Pool")
USER_DISCRIMINATOR = account_discriminator("User")

PoolLayout = CStruct(
    "authority" / U8[32],
    "paused" / Bool,
    "staking_mint" / U8[32],
    "staking_vault" / U8[32],
    "reward_a_mint" / U8[32],
    "reward_a_vault" / U8[32],
    "reward_b_mint" / U8[32],
    "reward_b_vault" / U8[32],
    "base_key" / U8[32],
    "reward_duration" / U64,
    "reward_duration_end" / U64,
    "last_update_time" / U64,
    "legacy_reward_a_rate" / U64,
    "legacy_reward_b_rate" / U64,
    "reward_a_per_token_stored" / U128,
    "reward_b_per_token_stored" / U128,
    "user_stake_count" / U32,
    "funders" / U8[32][3],
    "reward_a_rate" / U128,
    "reward_b_rate" / U128,
    "pool_bump" / U8,
    "total_staked" / U64,
)
POOL_LAYOUT_SIZE = 470

UserLayout = CStruct(
    "pool" / U8[32],
    "owner" / U8[32],
    "reward_a_per_token_complete" / U128,
    "reward_b_per_token_complete" / U128,
    "reward_a_per_token_pending" / U64,
    "reward_b_per_token_pending" / U64,
    "balance_staked" / U64,
    "nonce" / U8,
)
USER_LAYOUT_SIZE = 121


@dataclass(frozen=True)
class PoolState:
    authority: Pubkey
    paused: bool
    staking_mint: Pubkey
    staking_vault: Pubkey
    reward_a_mint: Pubkey
    reward_a_vault: Pubkey
    reward_b_mint: Pubkey
    reward_b_vault: Pubkey
    base_key: Pubkey
    reward_duration: int
    reward_duration_end: int
    last_update_time: int
    legacy_reward_a_rate: int
    legacy_reward_b_rate: int
    reward_a_per_token_stored: int
    reward_b_per_token_stored: int
    user_stake_count: int
    funders: Tuple[Pubkey, ...]
    reward_a_rate: int
    reward_b_rate: int
    pool_bump: int
    total_staked: int

    @property
    def is_dual(self) -> bool:
        return self.reward_a_mint != self.reward_b_mint

    def to_dict(self) -> dict:
        return {key: _plain(value) for key, value in self.__dict__.items()}


@dataclass(frozen=True)
class UserState:
    pool: Pubkey
    owner: Pubkey
    reward_a_per_token_complete: int
    reward_b_per_token_complete: int
    reward_a_per_token_pending: int
    reward_b_per_token_pending: int
    balance_staked: int
    nonce: int

    def to_dict(self) -> dict:
        return {key: _plain(value) for key, value in self.__dict__.items()}


def _plain(value):
    if isinstance(value, Pubkey):
        return str(value)
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value


def _pubkey(raw) -> Pubkey:
    return Pubkey.from_bytes(bytes(raw))


def _strip_discriminator(data: bytes, expected: bytes, size: int, kind: str, address: Optional[Pubkey]) -> bytes:
    if len(data) < DISCRIMINATOR_LEN + size:
        raise LayoutMismatch(address, kind, f"expected at least {DISCRIMINATOR_LEN + size} bytes, got {len(data)}")
    if data[:DISCRIMINATOR_LEN] != expected:
        raise LayoutMismatch(address, kind, f"discriminator {data[:DISCRIMINATOR_LEN].hex()} != {expected.hex()}")
    return data[DISCRIMINATOR_LEN : DISCRIMINATOR_LEN + size]


def parse_pool_account(data: bytes, address: Optional[Pubkey] = None) -> PoolState:
    body = _strip_discriminator(bytes(data), POOL_DISCRIMINATOR, POOL_LAYOUT_SIZE, "pool", address)
    parsed = PoolLayout.parse(body)
    return PoolState(
        authority=_pubkey(parsed.authority),
        paused=bool(parsed.paused),
        staking_mint=_pubkey(parsed.staking_mint),
        staking_vault=_pubkey(parsed.staking_vault),
        reward_a_mint=_pubkey(parsed.reward_a_mint),
        reward_a_vault=_pubkey(parsed.reward_a_vault),
        reward_b_mint=_pubkey(parsed.reward_b_mint),
        reward_b_vault=_pubkey(parsed.reward_b_vault),
        base_key=_pubkey(parsed.base_key),
        reward_duration=parsed.reward_duration,
        reward_duration_end=parsed.reward_duration_end,
        last_update_time=parsed.last_update_time,
        legacy_reward_a_rate=parsed.legacy_reward_a_rate,
        legacy_reward_b_rate=parsed.legacy_reward_b_rate,
        reward_a_per_token_stored=parsed.reward_a_per_token_stored,
        reward_b_per_token_stored=parsed.reward_b_per_token_stored,
        user_stake_count=parsed.user_stake_count,
        funders=tuple(_pubkey(f) for f in parsed.funders),
        reward_a_rate=parsed.reward_a_rate,
        reward_b_rate=parsed.reward_b_rate,
        pool_bump=parsed.pool_bump,
        total_staked=parsed.total_staked,
    )


def parse_user_account(data: bytes, address: Optional[Pubkey] = None) -> UserState:
    body = _strip_discriminator(bytes(data), USER_DISCRIMINATOR, USER_LAYOUT_SIZE, "user", address)
    parsed = UserLayout.parse(body)
    return UserState(
        pool=_pubkey(parsed.pool),
        owner=_pubkey(parsed.owner),
        reward_a_per_token_complete=parsed.reward_a_per_token_complete,
        reward_b_per_token_complete=parsed.reward_b_per_token_complete,
        reward_a_per_token_pending=parsed.reward_a_per_token_pending,
        reward_b_per_token_pending=parsed.reward_b_per_token_pending,
        balance_staked=parsed.balance_staked,
        nonce=parsed.nonce,
    )


def chunks(items: Sequence, size: int) -> List[Sequence]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class AccountReader:
    """Read-only access to farming program accounts over JSON-RPC."""

    def __init__(self, rpc: Client, program_id: Pubkey, commitment: Optional[str] = None):
        self.rpc = rpc
        self.program_id = program_id
        self.commitment = commitment

    def _get_account(self, address: Pubkey, kind: str):
        resp = self.rpc.get_account_info(address, commitment=self.commitment, encoding="base64")
        info = resp.value
        if info is None or info.data is None:
            raise AddressNotFound(address, kind)
        if info.owner != self.program_id:
            raise LayoutMismatch(address, kind, f"owned by {info.owner}, expected {self.program_id}")
        return info

    def fetch_pool(self, address: Pubkey) -> PoolState:
        info = self._get_account(address, "pool")
        return parse_pool_account(bytes(info.data), address)

    def fetch_user(self, address: Pubkey) -> UserState:
        info = self._get_account(address, "user")
        return parse_user_account(bytes(info.data), address)

    def fetch_users(self, addresses: Sequence[Pubkey]) -> List[Tuple[Pubkey, UserState]]:
        """Fetch many user records, skipping addresses that hold nothing."""
        found: List[Tuple[Pubkey, UserState]] = []
        for chunk in chunks(list(addresses), MULTIPLE_ACCOUNTS_CHUNK):
            resp = self.rpc.get_multiple_accounts(list(chunk), commitment=self.commitment, encoding="base64")
            for address, info in zip(chunk, resp.value):
                if info is None or info.data is None:
                    continue
                if info.owner != self.program_id:
                    raise LayoutMismatch(address, "user", f"owned by {info.owner}, expected {self.program_id}")
                found.append((address, parse_user_account(bytes(info.data), address)))
        return found

    def list_all_pools(self) -> List[Tuple[Pubkey, PoolState]]:
        # getProgramAccounts is unpaginated; an oversized result set surfaces as an RPC error.
        memcmp = MemcmpOpts(offset=0, bytes=POOL_DISCRIMINATOR)
        resp = self.rpc.get_program_accounts(
            self.program_id,
            commitment=self.commitment,
            encoding="base64",
            filters=[memcmp],
        )
        pools: List[Tuple[Pubkey, PoolState]] = []
        for keyed in resp.value or []:
            pools.append((keyed.pubkey, parse_pool_account(bytes(keyed.account.data), keyed.pubkey)))
        logger.debug("pools_listed program=%s count=%s", self.program_id, len(pools))
        return pools

    def account_exists(self, address: Pubkey) -> bool:
        resp = self.rpc.get_account_info(address, commitment=self.commitment, encoding="base64")
        return resp.value is not None

    def chain_time(self) -> int:
        info = self.rpc.get_account_info(SYSVAR_CLOCK_PUBKEY, commitment=self.commitment, encoding="base64").value
        if info is None:
            raise AddressNotFound(SYSVAR_CLOCK_PUBKEY, "clock sysvar")
        data = bytes(info.data)
        return int.from_bytes(data[32:40], "little", signed=True)
