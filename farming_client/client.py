from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from solana.rpc.api import Client
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from spl.token.instructions import create_associated_token_account, get_associated_token_address

from . import instructions as ix
from .accounts import AccountReader, PoolState, UserState
from .config import Settings, load_keypair
from .migration import MigrationReport, audit_rates, scan_and_migrate
from .pda import pool_pda, user_pda
from .rewards import RewardPair, claimable
from .tx_builder import TransactionSender

logger = logging.getLogger(__name__)


class FarmingClient:
    """One method per farming action. Every call reads what it needs, then submits one transaction."""

    def __init__(
        self,
        rpc: Client,
        program_id: Pubkey,
        payer: Keypair,
        priority_fee: Optional[int] = None,
        commitment: str = "confirmed",
        confirm: bool = True,
    ):
        self.program_id = program_id
        self.payer = payer
        self.reader = AccountReader(rpc, program_id, commitment)
        self.sender = TransactionSender(rpc, payer, priority_fee, commitment, confirm)

    @classmethod
    def from_settings(cls, settings: Settings, payer: Optional[Keypair] = None) -> "FarmingClient":
        commitment = settings.commitment_level()
        rpc = Client(settings.solana_rpc, commitment=commitment, timeout=settings.rpc_timeout)
        return cls(
            rpc,
            settings.program_pubkey(),
            payer or load_keypair(settings.keypair_path),
            priority_fee=settings.priority_fee,
            commitment=commitment,
            confirm=settings.confirm,
        )

    def _associated_token_accounts(
        self, owner: Pubkey, mints: Sequence[Pubkey]
    ) -> Tuple[List[Pubkey], List[Instruction]]:
        """Resolve owner ATAs, emitting one create instruction per ATA that does not exist yet."""
        addresses: List[Pubkey] = []
        create_ixs: List[Instruction] = []
        checked = set()
        for mint in mints:
            ata = get_associated_token_address(owner, mint)
            addresses.append(ata)
            if ata in checked:
                continue
            checked.add(ata)
            if not self.reader.account_exists(ata):
                logger.info("ata_create owner=%s mint=%s ata=%s", owner, mint, ata)
                create_ixs.append(create_associated_token_account(payer=self.payer.pubkey(), owner=owner, mint=mint))
        return addresses, create_ixs

    def _submit(self, action: ix.Action, signers: Sequence[Keypair], pre: Sequence[Instruction] = ()) -> Signature:
        instructions = [*pre, ix.build_instruction(action, self.program_id)]
        signature = self.sender.submit(instructions, signers)
        logger.info("action_sent action=%s signature=%s", type(action).__name__, signature)
        return signature

    def pool_address(
        self,
        reward_duration: int,
        staking_mint: Pubkey,
        reward_a_mint: Pubkey,
        reward_b_mint: Pubkey,
        base: Pubkey,
    ) -> Pubkey:
        return pool_pda(self.program_id, reward_duration, staking_mint, reward_a_mint, reward_b_mint, base).address

    def user_address(self, pool: Pubkey, owner: Pubkey) -> Pubkey:
        return user_pda(self.program_id, pool, owner).address

    # Mutating actions.

    def initialize_pool(
        self,
        base: Keypair,
        staking_mint: Pubkey,
        reward_a_mint: Pubkey,
        reward_b_mint: Pubkey,
        reward_duration: int,
        authority: Optional[Keypair] = None,
    ) -> Signature:
        authority = authority or self.payer
        action = ix.initialize_pool_action(
            self.program_id,
            authority.pubkey(),
            base.pubkey(),
            staking_mint,
            reward_a_mint,
            reward_b_mint,
            reward_duration,
        )
        logger.info("pool_init pool=%s reward_duration=%s", action.accounts.pool, reward_duration)
        return self._submit(action, [authority, base])

    def create_user(self, pool: Pubkey, owner: Optional[Keypair] = None) -> Signature:
        owner = owner or self.payer
        return self._submit(ix.create_user_action(self.program_id, pool, owner.pubkey()), [owner])

    def pause(self, pool: Pubkey, authority: Optional[Keypair] = None) -> Signature:
        authority = authority or self.payer
        return self._submit(ix.pause_action(pool, authority.pubkey()), [authority])

    def unpause(self, pool: Pubkey, authority: Optional[Keypair] = None) -> Signature:
        authority = authority or self.payer
        return self._submit(ix.unpause_action(pool, authority.pubkey()), [authority])

    def deposit(self, pool: Pubkey, amount: int, owner: Optional[Keypair] = None) -> Signature:
        owner = owner or self.payer
        state = self.reader.fetch_pool(pool)
        (stake_from,), pre = self._associated_token_accounts(owner.pubkey(), [state.staking_mint])
        action = ix.deposit_action(self.program_id, pool, state, owner.pubkey(), stake_from, amount)
        return self._submit(action, [owner], pre)

    def withdraw(self, pool: Pubkey, spt_amount: int, owner: Optional[Keypair] = None) -> Signature:
        owner = owner or self.payer
        state = self.reader.fetch_pool(pool)
        (stake_to,), pre = self._associated_token_accounts(owner.pubkey(), [state.staking_mint])
        action = ix.withdraw_action(self.program_id, pool, state, owner.pubkey(), stake_to, spt_amount)
        return self._submit(action, [owner], pre)

    def authorize_funder(self, pool: Pubkey, funder: Pubkey, authority: Optional[Keypair] = None) -> Signature:
        authority = authority or self.payer
        return self._submit(ix.authorize_funder_action(pool, authority.pubkey(), funder), [authority])

    def deauthorize_funder(self, pool: Pubkey, funder: Pubkey, authority: Optional[Keypair] = None) -> Signature:
        authority = authority or self.payer
        return self._submit(ix.deauthorize_funder_action(pool, authority.pubkey(), funder), [authority])

    def fund(self, pool: Pubkey, amount_a: int, amount_b: int, funder: Optional[Keypair] = None) -> Signature:
        funder = funder or self.payer
        state = self.reader.fetch_pool(pool)
        (from_a, from_b), pre = self._associated_token_accounts(
            funder.pubkey(), [state.reward_a_mint, state.reward_b_mint]
        )
        action = ix.fund_action(pool, state, funder.pubkey(), from_a, from_b, amount_a, amount_b)
        return self._submit(action, [funder], pre)

    def claim(self, pool: Pubkey, owner: Optional[Keypair] = None) -> Signature:
        owner = owner or self.payer
        state = self.reader.fetch_pool(pool)
        (reward_a, reward_b), pre = self._associated_token_accounts(
            owner.pubkey(), [state.reward_a_mint, state.reward_b_mint]
        )
        action = ix.claim_action(self.program_id, pool, state, owner.pubkey(), reward_a, reward_b)
        return self._submit(action, [owner], pre)

    def close_user(self, pool: Pubkey, owner: Optional[Keypair] = None) -> Signature:
        owner = owner or self.payer
        return self._submit(ix.close_user_action(self.program_id, pool, owner.pubkey()), [owner])

    def close_pool(self, pool: Pubkey, authority: Optional[Keypair] = None) -> Signature:
        authority = authority or self.payer
        state = self.reader.fetch_pool(pool)
        refundees, pre = self._associated_token_accounts(
            authority.pubkey(), [state.staking_mint, state.reward_a_mint, state.reward_b_mint]
        )
        action = ix.close_pool_action(pool, state, authority.pubkey(), tuple(refundees))
        return self._submit(action, [authority], pre)

    def migrate_farming_rate(self) -> MigrationReport:
        return scan_and_migrate(self.reader, self.sender)

    # Read-only.

    def pool_info(self, pool: Pubkey) -> PoolState:
        return self.reader.fetch_pool(pool)

    def stake_info(self, pool: Pubkey, owner: Optional[Pubkey] = None) -> UserState:
        owner = owner or self.payer.pubkey()
        return self.reader.fetch_user(self.user_address(pool, owner))

    def check_rates(self) -> Dict[str, List[Pubkey]]:
        return audit_rates(self.reader.list_all_pools())

    def user_balances(self, owner: Pubkey, pools: Sequence[Pubkey]) -> Dict[Pubkey, int]:
        """Staked balance per pool, omitting pools where the owner has nothing staked."""
        users = self.reader.fetch_users([self.user_address(pool, owner) for pool in pools])
        return {user.pool: user.balance_staked for _, user in users if user.balance_staked}

    def claimable_rewards(self, owner: Pubkey, pools: Sequence[Pubkey]) -> Dict[Pubkey, RewardPair]:
        now = self.reader.chain_time()
        users = {user.pool: user for _, user in self.reader.fetch_users([self.user_address(p, owner) for p in pools])}
        return {pool: claimable(self.reader.fetch_pool(pool), users.get(pool), now) for pool in pools}
