from .accounts import AccountReader, PoolState, UserState
from .client import FarmingClient
from .config import Settings, load_keypair
from .errors import AddressNotFound, FarmingError, LayoutMismatch, MissingSigner, SubmissionFailure
from .migration import needs_migration, scan_and_migrate

__all__ = [
    "AccountReader",
    "AddressNotFound",
    "FarmingClient",
    "FarmingError",
    "LayoutMismatch",
    "MissingSigner",
    "PoolState",
    "Settings",
    "SubmissionFailure",
    "UserState",
    "load_keypair",
    "needs_migration",
    "scan_and_migrate",
]
