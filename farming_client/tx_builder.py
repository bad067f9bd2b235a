from __future__ import annotations

import base64
import logging
from typing import List, Optional, Sequence

from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.core import (
    RPCException,
    RPCNoResultException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TxOpts
from solders.compute_budget import set_compute_unit_price
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .errors import MissingSigner, SubmissionFailure

logger = logging.getLogger(__name__)

RPC_ERRORS = (RPCException, RPCNoResultException, SolanaRpcException)
CONFIRM_ERRORS = RPC_ERRORS + (TransactionExpiredBlockheightExceededError, UnconfirmedTxError)


def with_priority_fee(ixs: Sequence[Instruction], priority_fee: Optional[int]) -> List[Instruction]:
    """Prepend a compute-unit price instruction when a priority fee is configured."""
    instructions: List[Instruction] = []
    if priority_fee is not None:
        instructions.append(set_compute_unit_price(priority_fee))
    instructions.extend(ixs)
    return instructions


def required_signer_keys(payer: Pubkey, ixs: Sequence[Instruction]) -> List[Pubkey]:
    keys: List[Pubkey] = [payer]
    for ix in ixs:
        for meta in ix.accounts:
            if meta.is_signer and meta.pubkey not in keys:
                keys.append(meta.pubkey)
    return keys


def build_transaction(
    payer: Keypair,
    ixs: Sequence[Instruction],
    signers: Sequence[Keypair],
    blockhash: Hash,
    priority_fee: Optional[int] = None,
) -> VersionedTransaction:
    instructions = with_priority_fee(ixs, priority_fee)
    available = {kp.pubkey(): kp for kp in [payer, *signers]}
    missing = [key for key in required_signer_keys(payer.pubkey(), instructions) if key not in available]
    if missing:
        raise MissingSigner(missing)
    message = MessageV0.try_compile(payer.pubkey(), instructions, [], blockhash)
    signer_keys = message.account_keys[: message.header.num_required_signatures]
    return VersionedTransaction(message, [available[key] for key in signer_keys])


def instruction_to_dict(ix: Instruction) -> dict:
    return {
        "program_id": str(ix.program_id),
        "keys": [
            {
                "pubkey": str(k.pubkey),
                "is_signer": k.is_signer,
                "is_writable": k.is_writable,
            }
            for k in ix.accounts
        ],
        "data": base64.b64encode(ix.data).decode(),
    }


class TransactionSender:
    """Signs and submits one atomic transaction per call. Never retries."""

    def __init__(
        self,
        rpc: Client,
        payer: Keypair,
        priority_fee: Optional[int] = None,
        commitment: str = "confirmed",
        confirm: bool = True,
    ):
        self.rpc = rpc
        self.payer = payer
        self.priority_fee = priority_fee
        self.commitment = commitment
        self.confirm = confirm

    def preview(self, ixs: Sequence[Instruction]) -> List[dict]:
        return [instruction_to_dict(ix) for ix in with_priority_fee(ixs, self.priority_fee)]

    def submit(self, ixs: Sequence[Instruction], signers: Sequence[Keypair] = ()) -> Signature:
        try:
            latest = self.rpc.get_latest_blockhash(self.commitment).value
        except RPC_ERRORS as exc:
            raise SubmissionFailure(f"unable to fetch blockhash: {exc}") from exc
        tx = build_transaction(self.payer, ixs, signers, latest.blockhash, self.priority_fee)
        try:
            resp = self.rpc.send_raw_transaction(
                bytes(tx),
                opts=TxOpts(skip_confirmation=True, skip_preflight=False, preflight_commitment=self.commitment),
            )
        except RPC_ERRORS as exc:
            raise SubmissionFailure(str(exc)) from exc
        signature = resp.value
        logger.info("tx_sent signature=%s instructions=%s", signature, len(tx.message.instructions))
        if self.confirm:
            self._confirm(signature, latest.last_valid_block_height)
        return signature

    def _confirm(self, signature: Signature, last_valid_block_height: Optional[int]) -> None:
        try:
            resp = self.rpc.confirm_transaction(
                signature, commitment=self.commitment, last_valid_block_height=last_valid_block_height
            )
        except CONFIRM_ERRORS as exc:
            raise SubmissionFailure(str(exc), signature=str(signature)) from exc
        statuses = resp.value or []
        err = statuses[0].err if statuses and statuses[0] is not None else None
        if err is not None:
            raise SubmissionFailure(str(err), signature=str(signature))
        logger.info("tx_confirmed signature=%s commitment=%s", signature, self.commitment)
