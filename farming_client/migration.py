"""Reward-rate encoding migration.

Pools created before the high-precision rate fields existed still carry their
rates in the legacy u64 fields. ``migrate_farming_rate`` moves them over once;
afterwards the current rate is non-zero and the pool is never touched again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from solders.pubkey import Pubkey
from solders.signature import Signature

from .accounts import AccountReader, PoolState
from .errors import FarmingError
from .instructions import build_instruction, migrate_farming_rate_action
from .tx_builder import TransactionSender

logger = logging.getLogger(__name__)

LEGACY = "legacy"
MIGRATED = "migrated"
UNFUNDED = "unfunded"
INCONSISTENT = "inconsistent"


def needs_migration(pool: PoolState) -> bool:
    return (pool.reward_a_rate == 0 and pool.legacy_reward_a_rate != 0) or (
        pool.reward_b_rate == 0 and pool.legacy_reward_b_rate != 0
    )


def rate_status(pool: PoolState) -> str:
    sides = (
        (pool.legacy_reward_a_rate, pool.reward_a_rate),
        (pool.legacy_reward_b_rate, pool.reward_b_rate),
    )
    if any(legacy != 0 and current != 0 for legacy, current in sides):
        return INCONSISTENT
    if needs_migration(pool):
        return LEGACY
    if all(current == 0 for _, current in sides):
        return UNFUNDED
    return MIGRATED


def audit_rates(pools: Sequence[Tuple[Pubkey, PoolState]]) -> Dict[str, List[Pubkey]]:
    report: Dict[str, List[Pubkey]] = {LEGACY: [], MIGRATED: [], UNFUNDED: [], INCONSISTENT: []}
    for address, pool in pools:
        report[rate_status(pool)].append(address)
    return report


@dataclass
class MigrationReport:
    scanned: int = 0
    skipped: List[Pubkey] = field(default_factory=list)
    migrated: List[Tuple[Pubkey, Signature]] = field(default_factory=list)
    failed: List[Tuple[Pubkey, FarmingError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def migrate_pools(
    pools: Sequence[Tuple[Pubkey, PoolState]],
    sender: TransactionSender,
    program_id: Pubkey,
) -> MigrationReport:
    """Submit one migrate transaction per pool that still uses legacy rates.

    Each pool is its own transaction; a failure is recorded and the scan moves on.
    """
    report = MigrationReport(scanned=len(pools))
    for address, pool in pools:
        if not needs_migration(pool):
            report.skipped.append(address)
            continue
        ix = build_instruction(migrate_farming_rate_action(address), program_id)
        try:
            signature = sender.submit([ix])
        except FarmingError as exc:
            logger.error("migrate_failed pool=%s error=%s", address, exc, exc_info=True)
            report.failed.append((address, exc))
            continue
        logger.info("migrate_sent pool=%s signature=%s", address, signature)
        report.migrated.append((address, signature))
    return report


def scan_and_migrate(reader: AccountReader, sender: TransactionSender) -> MigrationReport:
    pools = reader.list_all_pools()
    logger.info("migrate_scan pools=%s", len(pools))
    return migrate_pools(pools, sender, reader.program_id)
