from typing import List, NamedTuple, Optional

from upgrades.beacon import UpgradeableContract
from upgrades.errors import AuthorizationError, NetworkError
from upgrades.network import Network
from upgrades.utils import same_address


class SafetyReport(NamedTuple):
    ok: bool
    warnings: List[str]
    failures: List[str]
    version: Optional[str] = None


class OwnershipCheck(NamedTuple):
    """Truthy when the signer owns the beacon."""

    authorized: bool
    owner: str

    def __bool__(self) -> bool:
        return self.authorized


class ImplementationCheck(NamedTuple):
    """Truthy when the beacon points to the expected implementation."""

    matches: bool
    implementation: str

    def __bool__(self) -> bool:
        return self.matches


class SafetyValidator:
    """Read-only pre-upgrade checks; never sends a transaction."""

    def __init__(self, network: Network):
        self.network = network

    def _code_failure(self, address: str, role: str) -> Optional[str]:
        try:
            code = self.network.get_code(address)
        except NetworkError as e:
            return f"could not read code at {role} {address}: {e}"
        if not code:
            return f"no contract code at {role} {address}"
        return None

    def check(self, proxy_address: str, new_implementation_address: str) -> SafetyReport:
        failures = [
            failure
            for failure in (
                self._code_failure(new_implementation_address, "new implementation"),
                self._code_failure(proxy_address, "proxy"),
            )
            if failure
        ]

        warnings = list()
        version = None
        try:
            version = UpgradeableContract(self.network, proxy_address).version()
        except NetworkError as e:
            warnings.append(f"could not read version of {proxy_address}: {e}")

        return SafetyReport(ok=not failures, warnings=warnings, failures=failures, version=version)


class AuthorizationChecker:
    def __init__(self, network: Network):
        self.network = network

    def verify_owner(self, beacon_address: str, signer_address: str) -> OwnershipCheck:
        """Checks `signer_address` against the beacon owner, ignoring checksum case."""
        try:
            owner = UpgradeableContract(self.network, beacon_address).owner()
        except NetworkError as e:
            raise AuthorizationError(
                signer=signer_address,
                owner=None,
                message=f"could not read owner of beacon {beacon_address}: {e}",
            ) from e
        return OwnershipCheck(authorized=same_address(owner, signer_address), owner=owner)


class PostUpgradeVerifier:
    def __init__(self, network: Network):
        self.network = network

    def current_implementation(self, beacon_address: str) -> str:
        return UpgradeableContract(self.network, beacon_address).implementation()

    def verify(
        self, beacon_address: str, expected_implementation_address: str
    ) -> ImplementationCheck:
        """Re-reads the beacon directly; the proxy's slot is not consulted again."""
        implementation = self.current_implementation(beacon_address)
        return ImplementationCheck(
            matches=same_address(implementation, expected_implementation_address),
            implementation=implementation,
        )
