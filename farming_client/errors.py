from typing import Iterable, Optional

from solders.pubkey import Pubkey


class FarmingError(RuntimeError):
    """Base class for every error raised by the farming client."""


class ConfigError(FarmingError):
    pass


class AddressNotFound(FarmingError):
    def __init__(self, address: Pubkey, kind: str = "account"):
        self.address = address
        self.kind = kind
        super().__init__(f"{kind} {address} not found")


class LayoutMismatch(FarmingError):
    """Stored bytes do not decode as the expected record (client/program version skew)."""

    def __init__(self, address: Optional[Pubkey], kind: str, reason: str):
        self.address = address
        self.kind = kind
        self.reason = reason
        super().__init__(f"{kind} {address} layout mismatch: {reason}")


class MissingSigner(FarmingError):
    def __init__(self, missing: Iterable[Pubkey]):
        self.missing = list(missing)
        joined = ", ".join(str(pk) for pk in self.missing)
        super().__init__(f"Missing required signer(s): {joined}")


class SubmissionFailure(FarmingError):
    def __init__(self, detail: str, signature: Optional[str] = None):
        self.detail = detail
        self.signature = signature
        super().__init__(f"Transaction rejected: {detail}")
