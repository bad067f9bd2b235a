from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .errors import ConfigError

DEFAULT_PROGRAM_ID = "FarmuwXPWXvefWUeqFAa5w6rifLkq5X6E8bimYvrhCB1"
DEFAULT_RPC = "https://api.mainnet-beta.solana.com"
DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"
COMMITMENTS = ("processed", "confirmed", "finalized")


class Settings(BaseSettings):
    solana_rpc: str = DEFAULT_RPC
    program_id: str = DEFAULT_PROGRAM_ID
    keypair_path: str = DEFAULT_KEYPAIR_PATH
    base_keypair_path: Optional[str] = None
    priority_fee: Optional[int] = None  # micro-lamports per compute unit
    commitment: str = "confirmed"
    confirm: bool = True
    rpc_timeout: float = 30

    class Config:
        env_prefix = "FARMING_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    def program_pubkey(self) -> Pubkey:
        return parse_pubkey(self.program_id, "FARMING_PROGRAM_ID")

    def commitment_level(self) -> str:
        level = self.commitment.lower()
        if level not in COMMITMENTS:
            raise ConfigError(f"Unsupported commitment {self.commitment!r}; use one of {', '.join(COMMITMENTS)}")
        return level


def parse_pubkey(value: str, label: str = "pubkey") -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"{label} is not a valid pubkey: {exc}") from exc


def load_keypair(path: str | Path) -> Keypair:
    """Load a keypair file in the Solana CLI format (JSON byte array) or a {"secretKey": [...]} object."""
    resolved = Path(os.path.expanduser(str(path)))
    if not resolved.exists():
        raise ConfigError(f"Keypair file not found: {resolved}")
    try:
        data = json.loads(resolved.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Failed to read keypair {resolved}: {exc}") from exc
    if isinstance(data, list):
        secret_bytes = bytes(data)
    elif isinstance(data, dict) and "secretKey" in data:
        secret_bytes = bytes(data["secretKey"])
    else:
        raise ConfigError(f"Unsupported keypair format in {resolved}")
    try:
        return Keypair.from_bytes(secret_bytes)
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"Failed to parse keypair {resolved}: {exc}") from exc
