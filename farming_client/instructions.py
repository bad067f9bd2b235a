"""Instruction encoding for the farming program.

The program reads its accounts positionally, so every account set is a
NamedTuple whose field order *is* the wire order. Each action is a frozen
dataclass and ``build_instruction`` is the only place that turns one into a
``solders`` Instruction.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, fields
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

from borsh_construct import CStruct, U8, U64
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID

from .accounts import PoolState
from .pda import pool_pda, user_pda, vault_pdas

SYS_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
SYSVAR_RENT_PUBKEY = Pubkey.from_string("SysvarRent111111111111111111111111111111111")


def sighash(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


InitializePoolArgs = CStruct("reward_duration" / U64)
DepositArgs = CStruct("amount" / U64)
WithdrawArgs = CStruct("spt_amount" / U64)
AuthorizeFunderArgs = CStruct("funder_to_add" / U8[32])
DeauthorizeFunderArgs = CStruct("funder_to_remove" / U8[32])
FundArgs = CStruct("amount_a" / U64, "amount_b" / U64)


# Account sets. Field order must match the deployed program.


class InitializePoolAccounts(NamedTuple):
    pool: Pubkey
    staking_mint: Pubkey
    staking_vault: Pubkey
    reward_a_mint: Pubkey
    reward_a_vault: Pubkey
    reward_b_mint: Pubkey
    reward_b_vault: Pubkey
    authority: Pubkey
    base: Pubkey
    system_program: Pubkey = SYS_PROGRAM_ID
    token_program: Pubkey = TOKEN_PROGRAM_ID
    rent: Pubkey = SYSVAR_RENT_PUBKEY

    SIGNERS = ("authority", "base")
    WRITABLE = ("pool", "staking_vault", "reward_a_vault", "reward_b_vault", "authority")


class CreateUserAccounts(NamedTuple):
    pool: Pubkey
    user: Pubkey
    owner: Pubkey
    system_program: Pubkey = SYS_PROGRAM_ID

    SIGNERS = ("owner",)
    WRITABLE = ("pool", "user", "owner")


class PauseAccounts(NamedTuple):
    pool: Pubkey
    authority: Pubkey

    SIGNERS = ("authority",)
    WRITABLE = ("pool",)


class DepositAccounts(NamedTuple):
    pool: Pubkey
    staking_vault: Pubkey
    stake_from_account: Pubkey
    user: Pubkey
    owner: Pubkey
    token_program: Pubkey = TOKEN_PROGRAM_ID

    SIGNERS = ("owner",)
    WRITABLE = ("pool", "staking_vault", "stake_from_account", "user")


class FunderChangeAccounts(NamedTuple):
    pool: Pubkey
    authority: Pubkey

    SIGNERS = ("authority",)
    WRITABLE = ("pool",)


class FundAccounts(NamedTuple):
    pool: Pubkey
    staking_vault: Pubkey
    reward_a_vault: Pubkey
    reward_b_vault: Pubkey
    funder: Pubkey
    from_a: Pubkey
    from_b: Pubkey
    token_program: Pubkey = TOKEN_PROGRAM_ID

    SIGNERS = ("funder",)
    WRITABLE = ("pool", "staking_vault", "reward_a_vault", "reward_b_vault", "from_a", "from_b")


class ClaimAccounts(NamedTuple):
    pool: Pubkey
    staking_vault: Pubkey
    reward_a_vault: Pubkey
    reward_b_vault: Pubkey
    user: Pubkey
    owner: Pubkey
    reward_a_account: Pubkey
    reward_b_account: Pubkey
    token_program: Pubkey = TOKEN_PROGRAM_ID

    SIGNERS = ("owner",)
    WRITABLE = (
        "pool",
        "staking_vault",
        "reward_a_vault",
        "reward_b_vault",
        "user",
        "reward_a_account",
        "reward_b_account",
    )


class CloseUserAccounts(NamedTuple):
    pool: Pubkey
    user: Pubkey
    owner: Pubkey

    SIGNERS = ("owner",)
    WRITABLE = ("pool", "user", "owner")


class ClosePoolAccounts(NamedTuple):
    refundee: Pubkey
    staking_refundee: Pubkey
    reward_a_refundee: Pubkey
    reward_b_refundee: Pubkey
    pool: Pubkey
    authority: Pubkey
    staking_vault: Pubkey
    reward_a_vault: Pubkey
    reward_b_vault: Pubkey
    token_program: Pubkey = TOKEN_PROGRAM_ID

    SIGNERS = ("authority",)
    WRITABLE = (
        "refundee",
        "staking_refundee",
        "reward_a_refundee",
        "reward_b_refundee",
        "pool",
        "staking_vault",
        "reward_a_vault",
        "reward_b_vault",
    )


class MigrateFarmingRateAccounts(NamedTuple):
    pool: Pubkey

    SIGNERS = ()
    WRITABLE = ("pool",)


AccountSet = Union[
    InitializePoolAccounts,
    CreateUserAccounts,
    PauseAccounts,
    DepositAccounts,
    FunderChangeAccounts,
    FundAccounts,
    ClaimAccounts,
    CloseUserAccounts,
    ClosePoolAccounts,
    MigrateFarmingRateAccounts,
]


def to_account_metas(accounts: AccountSet) -> List[AccountMeta]:
    return [
        AccountMeta(pubkey=value, is_signer=name in accounts.SIGNERS, is_writable=name in accounts.WRITABLE)
        for name, value in zip(accounts._fields, accounts)
    ]


# Actions.


@dataclass(frozen=True)
class InitializePool:
    accounts: InitializePoolAccounts
    reward_duration: int


@dataclass(frozen=True)
class CreateUser:
    accounts: CreateUserAccounts


@dataclass(frozen=True)
class Pause:
    accounts: PauseAccounts


@dataclass(frozen=True)
class Unpause:
    accounts: PauseAccounts


@dataclass(frozen=True)
class Deposit:
    accounts: DepositAccounts
    amount: int


@dataclass(frozen=True)
class Withdraw:
    accounts: DepositAccounts
    spt_amount: int


@dataclass(frozen=True)
class AuthorizeFunder:
    accounts: FunderChangeAccounts
    funder_to_add: Pubkey


@dataclass(frozen=True)
class DeauthorizeFunder:
    accounts: FunderChangeAccounts
    funder_to_remove: Pubkey


@dataclass(frozen=True)
class Fund:
    accounts: FundAccounts
    amount_a: int
    amount_b: int


@dataclass(frozen=True)
class Claim:
    accounts: ClaimAccounts


@dataclass(frozen=True)
class CloseUser:
    accounts: CloseUserAccounts


@dataclass(frozen=True)
class ClosePool:
    accounts: ClosePoolAccounts


@dataclass(frozen=True)
class MigrateFarmingRate:
    accounts: MigrateFarmingRateAccounts


Action = Union[
    InitializePool,
    CreateUser,
    Pause,
    Unpause,
    Deposit,
    Withdraw,
    AuthorizeFunder,
    DeauthorizeFunder,
    Fund,
    Claim,
    CloseUser,
    ClosePool,
    MigrateFarmingRate,
]


class ActionSpec(NamedTuple):
    name: str
    accounts_type: type
    args_layout: Optional[CStruct]


ACTIONS: Dict[type, ActionSpec] = {
    InitializePool: ActionSpec("initialize_pool", InitializePoolAccounts, InitializePoolArgs),
    CreateUser: ActionSpec("create_user", CreateUserAccounts, None),
    Pause: ActionSpec("pause", PauseAccounts, None),
    Unpause: ActionSpec("unpause", PauseAccounts, None),
    Deposit: ActionSpec("deposit", DepositAccounts, DepositArgs),
    Withdraw: ActionSpec("withdraw", DepositAccounts, WithdrawArgs),
    AuthorizeFunder: ActionSpec("authorize_funder", FunderChangeAccounts, AuthorizeFunderArgs),
    DeauthorizeFunder: ActionSpec("deauthorize_funder", FunderChangeAccounts, DeauthorizeFunderArgs),
    Fund: ActionSpec("fund", FundAccounts, FundArgs),
    Claim: ActionSpec("claim", ClaimAccounts, None),
    CloseUser: ActionSpec("close_user", CloseUserAccounts, None),
    ClosePool: ActionSpec("close_pool", ClosePoolAccounts, None),
    MigrateFarmingRate: ActionSpec("migrate_farming_rate", MigrateFarmingRateAccounts, None),
}


def action_spec(action: Action) -> ActionSpec:
    entry = ACTIONS.get(type(action))
    if entry is None:
        raise TypeError(f"Unsupported farming action: {type(action).__name__}")
    if not isinstance(action.accounts, entry.accounts_type):
        raise TypeError(
            f"{type(action).__name__} expects {entry.accounts_type.__name__}, got {type(action.accounts).__name__}"
        )
    return entry


def _arg_value(value):
    if isinstance(value, Pubkey):
        return list(bytes(value))
    return value


def encode_action_data(action: Action) -> bytes:
    entry = action_spec(action)
    data = sighash(entry.name)
    if entry.args_layout is not None:
        args = {f.name: _arg_value(getattr(action, f.name)) for f in fields(action) if f.name != "accounts"}
        data += entry.args_layout.build(args)
    return data


def required_signers(action: Action) -> List[Pubkey]:
    action_spec(action)
    accounts = action.accounts
    return [getattr(accounts, name) for name in accounts.SIGNERS]


def build_instruction(action: Action, program_id: Pubkey) -> Instruction:
    data = encode_action_data(action)
    return Instruction(program_id=program_id, data=data, accounts=to_account_metas(action.accounts))


# Account resolution. Pool state is always passed in by the caller.


def initialize_pool_action(
    program_id: Pubkey,
    authority: Pubkey,
    base: Pubkey,
    staking_mint: Pubkey,
    reward_a_mint: Pubkey,
    reward_b_mint: Pubkey,
    reward_duration: int,
) -> InitializePool:
    pool = pool_pda(program_id, reward_duration, staking_mint, reward_a_mint, reward_b_mint, base).address
    vaults = vault_pdas(program_id, pool)
    accounts = InitializePoolAccounts(
        pool=pool,
        staking_mint=staking_mint,
        staking_vault=vaults.staking_vault.address,
        reward_a_mint=reward_a_mint,
        reward_a_vault=vaults.reward_a_vault.address,
        reward_b_mint=reward_b_mint,
        reward_b_vault=vaults.reward_b_vault.address,
        authority=authority,
        base=base,
    )
    return InitializePool(accounts=accounts, reward_duration=reward_duration)


def create_user_action(program_id: Pubkey, pool: Pubkey, owner: Pubkey) -> CreateUser:
    user = user_pda(program_id, pool, owner).address
    return CreateUser(CreateUserAccounts(pool=pool, user=user, owner=owner))


def pause_action(pool: Pubkey, authority: Pubkey) -> Pause:
    return Pause(PauseAccounts(pool=pool, authority=authority))


def unpause_action(pool: Pubkey, authority: Pubkey) -> Unpause:
    return Unpause(PauseAccounts(pool=pool, authority=authority))


def _stake_accounts(
    program_id: Pubkey, pool_address: Pubkey, pool: PoolState, owner: Pubkey, stake_from_account: Pubkey
) -> DepositAccounts:
    return DepositAccounts(
        pool=pool_address,
        staking_vault=pool.staking_vault,
        stake_from_account=stake_from_account,
        user=user_pda(program_id, pool_address, owner).address,
        owner=owner,
    )


def deposit_action(
    program_id: Pubkey,
    pool_address: Pubkey,
    pool: PoolState,
    owner: Pubkey,
    stake_from_account: Pubkey,
    amount: int,
) -> Deposit:
    return Deposit(_stake_accounts(program_id, pool_address, pool, owner, stake_from_account), amount)


def withdraw_action(
    program_id: Pubkey,
    pool_address: Pubkey,
    pool: PoolState,
    owner: Pubkey,
    stake_from_account: Pubkey,
    spt_amount: int,
) -> Withdraw:
    return Withdraw(_stake_accounts(program_id, pool_address, pool, owner, stake_from_account), spt_amount)


def authorize_funder_action(pool: Pubkey, authority: Pubkey, funder: Pubkey) -> AuthorizeFunder:
    return AuthorizeFunder(FunderChangeAccounts(pool=pool, authority=authority), funder)


def deauthorize_funder_action(pool: Pubkey, authority: Pubkey, funder: Pubkey) -> DeauthorizeFunder:
    return DeauthorizeFunder(FunderChangeAccounts(pool=pool, authority=authority), funder)


def fund_action(
    pool_address: Pubkey,
    pool: PoolState,
    funder: Pubkey,
    from_a: Pubkey,
    from_b: Pubkey,
    amount_a: int,
    amount_b: int,
) -> Fund:
    accounts = FundAccounts(
        pool=pool_address,
        staking_vault=pool.staking_vault,
        reward_a_vault=pool.reward_a_vault,
        reward_b_vault=pool.reward_b_vault,
        funder=funder,
        from_a=from_a,
        from_b=from_b,
    )
    return Fund(accounts, amount_a, amount_b)


def claim_action(
    program_id: Pubkey,
    pool_address: Pubkey,
    pool: PoolState,
    owner: Pubkey,
    reward_a_account: Pubkey,
    reward_b_account: Pubkey,
) -> Claim:
    accounts = ClaimAccounts(
        pool=pool_address,
        staking_vault=pool.staking_vault,
        reward_a_vault=pool.reward_a_vault,
        reward_b_vault=pool.reward_b_vault,
        user=user_pda(program_id, pool_address, owner).address,
        owner=owner,
        reward_a_account=reward_a_account,
        reward_b_account=reward_b_account,
    )
    return Claim(accounts)


def close_user_action(program_id: Pubkey, pool: Pubkey, owner: Pubkey) -> CloseUser:
    user = user_pda(program_id, pool, owner).address
    return CloseUser(CloseUserAccounts(pool=pool, user=user, owner=owner))


def close_pool_action(
    pool_address: Pubkey,
    pool: PoolState,
    authority: Pubkey,
    refundees: Tuple[Pubkey, Pubkey, Pubkey],
) -> ClosePool:
    staking_refundee, reward_a_refundee, reward_b_refundee = refundees
    accounts = ClosePoolAccounts(
        refundee=authority,
        staking_refundee=staking_refundee,
        reward_a_refundee=reward_a_refundee,
        reward_b_refundee=reward_b_refundee,
        pool=pool_address,
        authority=authority,
        staking_vault=pool.staking_vault,
        reward_a_vault=pool.reward_a_vault,
        reward_b_vault=pool.reward_b_vault,
    )
    return ClosePool(accounts)


def migrate_farming_rate_action(pool: Pubkey) -> MigrateFarmingRate:
    return MigrateFarmingRate(MigrateFarmingRateAccounts(pool=pool))
