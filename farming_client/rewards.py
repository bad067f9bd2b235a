"""Client-side estimate of claimable rewards. The program remains authoritative."""

from typing import NamedTuple, Optional

from .accounts import PoolState, UserState

PRECISION = 1_000_000_000


class RewardPair(NamedTuple):
    a: int
    b: int


def last_time_reward_applicable(pool: PoolState, now: int) -> int:
    return min(now, pool.reward_duration_end)


def reward_per_token(pool: PoolState, last_time_applicable: int) -> RewardPair:
    if pool.total_staked == 0:
        return RewardPair(pool.reward_a_per_token_stored, pool.reward_b_per_token_stored)
    time_period = last_time_applicable - pool.last_update_time
    return RewardPair(
        pool.reward_a_per_token_stored + time_period * pool.reward_a_rate // pool.total_staked,
        pool.reward_b_per_token_stored + time_period * pool.reward_b_rate // pool.total_staked,
    )


def claimable(pool: PoolState, user: Optional[UserState], now: int) -> RewardPair:
    if user is None:
        return RewardPair(0, 0)
    per_token = reward_per_token(pool, last_time_reward_applicable(pool, now))
    return RewardPair(
        user.balance_staked * (per_token.a - user.reward_a_per_token_complete) // PRECISION
        + user.reward_a_per_token_pending,
        user.balance_staked * (per_token.b - user.reward_b_per_token_complete) // PRECISION
        + user.reward_b_per_token_pending,
    )
