from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from solders.pubkey import Pubkey

from .client import FarmingClient
from .config import Settings, load_keypair
from .errors import ConfigError, FarmingError

logger = logging.getLogger(__name__)


def pubkey_arg(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except Exception as exc:  # noqa: BLE001
        raise argparse.ArgumentTypeError(f"invalid pubkey {value!r}: {exc}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="farming", description="Dual-reward staking pool client.")
    parser.add_argument("--rpc", default=None, help="RPC endpoint (env FARMING_SOLANA_RPC).")
    parser.add_argument("--program-id", default=None, help="Farming program id (env FARMING_PROGRAM_ID).")
    parser.add_argument("--keypair", default=None, help="Payer keypair file (env FARMING_KEYPAIR_PATH).")
    parser.add_argument("--base", default=None, help="Base keypair file used by init (env FARMING_BASE_KEYPAIR_PATH).")
    parser.add_argument("--priority-fee", type=int, default=None, help="Compute unit price in micro-lamports.")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create a pool and its three vaults.")
    init.add_argument("--staking-mint", type=pubkey_arg, required=True)
    init.add_argument("--reward-a-mint", type=pubkey_arg, required=True)
    init.add_argument("--reward-b-mint", type=pubkey_arg, required=True)
    init.add_argument("--reward-duration", type=int, required=True)

    for name in ("create-user", "pause", "unpause", "claim", "close-user", "close-pool", "show-info", "stake-info"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--pool", type=pubkey_arg, required=True)

    deposit = sub.add_parser("deposit")
    deposit.add_argument("--pool", type=pubkey_arg, required=True)
    deposit.add_argument("--amount", type=int, required=True)

    withdraw = sub.add_parser("withdraw")
    withdraw.add_argument("--pool", type=pubkey_arg, required=True)
    withdraw.add_argument("--spt-amount", type=int, required=True)

    for name in ("authorize", "deauthorize"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--pool", type=pubkey_arg, required=True)
        cmd.add_argument("--funder", type=pubkey_arg, required=True)

    fund = sub.add_parser("fund")
    fund.add_argument("--pool", type=pubkey_arg, required=True)
    fund.add_argument("--amount-a", type=int, required=True)
    fund.add_argument("--amount-b", type=int, required=True)

    sub.add_parser("check-rates", help="Report the reward-rate encoding of every pool.")
    sub.add_parser("migrate-farming-rate", help="Migrate every pool still using legacy reward rates.")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    overrides = {
        "solana_rpc": args.rpc,
        "program_id": args.program_id,
        "keypair_path": args.keypair,
        "base_keypair_path": args.base,
        "priority_fee": args.priority_fee,
    }
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


def run(args: argparse.Namespace, settings: Settings, client: FarmingClient) -> int:
    cmd = args.command
    print(f"Wallet {client.payer.pubkey()}")
    print(f"Program ID {client.program_id}")

    if cmd == "show-info":
        print(json.dumps({"pool": str(args.pool), **client.pool_info(args.pool).to_dict()}, indent=2))
        return 0
    if cmd == "stake-info":
        print(json.dumps(client.stake_info(args.pool).to_dict(), indent=2))
        return 0
    if cmd == "check-rates":
        report = client.check_rates()
        print(json.dumps({status: [str(pk) for pk in pools] for status, pools in report.items()}, indent=2))
        return 1 if report["inconsistent"] else 0
    if cmd == "migrate-farming-rate":
        migration = client.migrate_farming_rate()
        print(f"len pool {migration.scanned}")
        for pool, signature in migration.migrated:
            print(f"Migrate pool {pool} signature {signature}")
        for pool, exc in migration.failed:
            print(f"Migrate pool {pool} failed: {exc}", file=sys.stderr)
        return 0 if migration.ok else 1

    if cmd == "init":
        if not settings.base_keypair_path:
            raise ConfigError("init requires --base or FARMING_BASE_KEYPAIR_PATH")
        base = load_keypair(settings.base_keypair_path)
        pool = client.pool_address(
            args.reward_duration, args.staking_mint, args.reward_a_mint, args.reward_b_mint, base.pubkey()
        )
        print(f"pool address {pool}")
        signature = client.initialize_pool(
            base, args.staking_mint, args.reward_a_mint, args.reward_b_mint, args.reward_duration
        )
    elif cmd == "create-user":
        signature = client.create_user(args.pool)
    elif cmd == "pause":
        signature = client.pause(args.pool)
    elif cmd == "unpause":
        signature = client.unpause(args.pool)
    elif cmd == "deposit":
        signature = client.deposit(args.pool, args.amount)
    elif cmd == "withdraw":
        signature = client.withdraw(args.pool, args.spt_amount)
    elif cmd == "authorize":
        signature = client.authorize_funder(args.pool, args.funder)
    elif cmd == "deauthorize":
        signature = client.deauthorize_funder(args.pool, args.funder)
    elif cmd == "fund":
        signature = client.fund(args.pool, args.amount_a, args.amount_b)
    elif cmd == "claim":
        signature = client.claim(args.pool)
    elif cmd == "close-user":
        signature = client.close_user(args.pool)
    elif cmd == "close-pool":
        signature = client.close_pool(args.pool)
    else:
        raise ConfigError(f"Unknown command {cmd}")
    print(f"Signature {signature}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        settings = load_settings(args)
        client = FarmingClient.from_settings(settings)
        return run(args, settings, client)
    except FarmingError as exc:
        logger.debug("command_failed command=%s", args.command, exc_info=True)
        print(f"[error] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
