from typing import Optional


class UpgradeError(Exception):
    """Base class for all upgrade run errors."""


class ConfigurationError(UpgradeError, ValueError):
    """Raised when the upgrade configuration is incomplete or malformed; fatal to the run."""


class UpgradeAborted(UpgradeError):
    """Raised when the operator declines an upgrade; fatal to the run."""


class NetworkError(UpgradeError):
    """Raised by a network collaborator when a read-only request fails."""


class ModuleUpgradeError(UpgradeError):
    """Fatal for a single module only; recorded in its result and the run continues."""


class StorageReadError(ModuleUpgradeError):
    pass


class SafetyCheckError(ModuleUpgradeError):
    pass


class AuthorizationError(ModuleUpgradeError):
    def __init__(self, signer: str, owner: Optional[str], message: Optional[str] = None):
        self.signer = signer
        self.owner = owner
        message = message or f"signer {signer} is not the beacon owner ({owner})"
        super().__init__(message)


class TransactionError(ModuleUpgradeError):
    pass


class ConfirmationTimeout(ModuleUpgradeError):
    """
    The transaction was submitted but no receipt was observed in time.
    It may still confirm later; check chain state before assuming failure.
    """

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(
            f"transaction {tx_hash} not confirmed within {timeout} seconds; "
            f"check chain state manually"
        )


class VerificationMismatch(ModuleUpgradeError):
    def __init__(self, beacon: str, expected: str, actual: str):
        self.beacon = beacon
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"beacon {beacon} points to {actual} after upgrade; expected {expected}"
        )
