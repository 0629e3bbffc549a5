from enum import Enum
from typing import Any, Callable, Iterator, List, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress

from upgrades.beacon import StorageSlotReader
from upgrades.checks import AuthorizationChecker, PostUpgradeVerifier, SafetyValidator
from upgrades.config import UpgradeConfig
from upgrades.errors import (
    AuthorizationError,
    ConfirmationTimeout,
    ModuleUpgradeError,
    NetworkError,
    SafetyCheckError,
    StorageReadError,
    VerificationMismatch,
)
from upgrades.executor import UpgradeExecutor
from upgrades.network import Network
from upgrades.utils import is_zero_address


class Outcome(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    CHECKED = "checked"  # dry run; every pre-upgrade check passed


class ModuleState(Enum):
    PENDING = 0
    SAFETY_CHECKED = 1
    AUTHORIZED = 2
    EXECUTED = 3
    VERIFIED = 4


class UpgradeTarget(NamedTuple):
    name: str
    proxy_address: ChecksumAddress
    implementation_address: ChecksumAddress
    beacon_address: Optional[ChecksumAddress] = None


class UpgradeResult(NamedTuple):
    name: str
    outcome: Outcome
    beacon_address: Optional[str] = None
    implementation_address: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    state: ModuleState = ModuleState.PENDING
    previous_implementation: Optional[str] = None
    tx_hash: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAILED


class UpgradeSummary:
    """Per-module results in upgrade order, plus the aggregate outcome."""

    def __init__(self):
        self.results: List[UpgradeResult] = list()

    def add(self, result: UpgradeResult) -> None:
        self.results.append(result)

    def get(self, name: str) -> Optional[UpgradeResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None

    @property
    def success(self) -> bool:
        # skipped modules are vacuously successful
        return not any(result.failed for result in self.results)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def __iter__(self) -> Iterator[UpgradeResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def render(self) -> str:
        lines = ["", "Upgrade Summary", "==============="]
        width = max([len(result.name) for result in self.results] or [0])
        for result in self.results:
            line = f"\t{result.name.ljust(width)} : {result.outcome.name}"
            if result.failed:
                line += f" ({result.error}: {result.reason})"
            elif result.outcome in (Outcome.SUCCESS, Outcome.CHECKED):
                line += (
                    f" beacon={result.beacon_address} "
                    f"implementation {result.previous_implementation} -> "
                    f"{result.implementation_address}"
                )
                if result.tx_hash:
                    line += f" tx={result.tx_hash}"
            lines.append(line)
            for warning in result.warnings:
                lines.append(f"\t\t(!) {warning}")
        lines.append(f"Overall upgrade successful: {self.success}")
        return "\n".join(lines)


class Orchestrator:
    """
    Drives every enabled module through beacon discovery, safety checks,
    authorization, upgrade and verification, strictly one module at a time.
    """

    def __init__(
        self,
        config: UpgradeConfig,
        network: Network,
        signer: Any,
        confirm: Optional[Callable[[UpgradeTarget], None]] = None,
        dry_run: bool = False,
    ):
        self.config = config
        self.network = network
        self.signer = signer
        self.confirm = confirm
        self.dry_run = dry_run

        self.reader = StorageSlotReader(network)
        self.validator = SafetyValidator(network)
        self.authorizer = AuthorizationChecker(network)
        self.executor = UpgradeExecutor(network, signer, timeout=config.confirmation_timeout)
        self.verifier = PostUpgradeVerifier(network)

        self.summary = UpgradeSummary()

    def run(self) -> UpgradeSummary:
        # fatal before anything touches the network
        self.config.validate()

        self.summary = UpgradeSummary()
        for name, module in self.config.modules.items():
            if not module.enabled:
                print(f"\n(i) Skipping {name}; not enabled")
                self.summary.add(UpgradeResult(name=name, outcome=Outcome.SKIPPED))
                continue

            target = UpgradeTarget(
                name=name,
                proxy_address=module.proxy_address,
                implementation_address=module.implementation_address,
            )
            self.summary.add(self.upgrade(target))

        return self.summary

    def _previous_implementation(self, beacon_address: str, warnings: List[str]) -> Optional[str]:
        try:
            return self.verifier.current_implementation(beacon_address)
        except NetworkError as e:
            warnings.append(f"could not read current implementation of {beacon_address}: {e}")
            return None

    def upgrade(self, target: UpgradeTarget) -> UpgradeResult:
        """Runs a single module through its state machine; module errors end up in the result."""
        print(f"\nUpgrading {target.name} (proxy {target.proxy_address})")
        state = ModuleState.PENDING
        warnings = list()
        previous_implementation = None
        tx_hash = None

        try:
            beacon_address = self.reader.read_beacon(target.proxy_address)
            if is_zero_address(beacon_address):
                raise StorageReadError(
                    f"Beacon slot for contract at {target.proxy_address} is empty. "
                    "Are you sure this is a beacon proxy?"
                )
            target = target._replace(beacon_address=beacon_address)
            print(f"\tbeacon={beacon_address}")

            if self.config.safety_checks:
                report = self.validator.check(target.proxy_address, target.implementation_address)
                warnings.extend(report.warnings)
                if not report.ok:
                    raise SafetyCheckError("; ".join(report.failures))
                if report.version is not None:
                    print(f"\tversion={report.version}")
                state = ModuleState.SAFETY_CHECKED
            else:
                print("\t(i) Safety checks disabled")

            signer_address = self.signer.address
            ownership = self.authorizer.verify_owner(beacon_address, signer_address)
            if not ownership:
                raise AuthorizationError(signer=signer_address, owner=ownership.owner)
            state = ModuleState.AUTHORIZED

            previous_implementation = self._previous_implementation(beacon_address, warnings)
            print(f"\tcurrentImplementation={previous_implementation}")

            if self.dry_run:
                print(f"(i) Dry run; {target.name} passed all pre-upgrade checks")
                return self._result(
                    target, Outcome.CHECKED, state, previous_implementation, tx_hash, warnings
                )

            if self.confirm is not None:
                self.confirm(target)

            try:
                receipt = self.executor.execute(beacon_address, target.implementation_address)
            except ConfirmationTimeout as e:
                tx_hash = e.tx_hash
                raise
            tx_hash = receipt.tx_hash
            state = ModuleState.EXECUTED

            try:
                verified = self.verifier.verify(beacon_address, target.implementation_address)
            except NetworkError as e:
                raise VerificationMismatch(
                    beacon=beacon_address,
                    expected=target.implementation_address,
                    actual=f"<unreadable: {e}>",
                ) from e
            if not verified:
                raise VerificationMismatch(
                    beacon=beacon_address,
                    expected=target.implementation_address,
                    actual=verified.implementation,
                )
            state = ModuleState.VERIFIED

        except ModuleUpgradeError as e:
            print(f"(!) {target.name} upgrade failed: {e}")
            return self._result(
                target,
                Outcome.FAILED,
                state,
                previous_implementation,
                tx_hash,
                warnings,
                error=e,
            )

        print(f"(i) {target.name} upgraded to {target.implementation_address}")
        return self._result(
            target, Outcome.SUCCESS, state, previous_implementation, tx_hash, warnings
        )

    @staticmethod
    def _result(
        target: UpgradeTarget,
        outcome: Outcome,
        state: ModuleState,
        previous_implementation: Optional[str],
        tx_hash: Optional[str],
        warnings: List[str],
        error: Optional[Exception] = None,
    ) -> UpgradeResult:
        return UpgradeResult(
            name=target.name,
            outcome=outcome,
            beacon_address=target.beacon_address,
            implementation_address=target.implementation_address,
            reason=str(error) if error else None,
            error=error.__class__.__name__ if error else None,
            state=state,
            previous_implementation=previous_implementation,
            tx_hash=tx_hash,
            warnings=tuple(warnings),
        )
