import typing
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Mapping, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import is_hex_address, to_checksum_address

from upgrades.constants import (
    CONFIRMATION_TIMEOUT_ENVVAR,
    DEFAULT_CONFIRMATION_TIMEOUT,
    ENABLE_MODULE_ENVVAR_TEMPLATE,
    FALSY_VALUES,
    IMPLEMENTATION_ADDRESS_ENVVAR_TEMPLATE,
    MAX_FEE_ENVVAR,
    MAX_PRIORITY_FEE_ENVVAR,
    MODULE_ENV_PREFIXES,
    PROXY_ADDRESS_ENVVAR_TEMPLATE,
    SAFETY_CHECKS_ENVVAR,
    TRUTHY_VALUES,
    UPGRADE_ORDER,
)
from upgrades.errors import ConfigurationError
from upgrades.utils import _load_yaml


class ModuleConfig(NamedTuple):
    """Upgrade settings for a single beacon-proxied module."""

    enabled: bool = False
    proxy_address: Optional[ChecksumAddress] = None
    implementation_address: Optional[ChecksumAddress] = None


def parse_bool(value: typing.Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUTHY_VALUES:
        return True
    if normalized in FALSY_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean; got '{value}'")


def parse_address(value: typing.Any, name: str) -> Optional[ChecksumAddress]:
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if not is_hex_address(value):
        raise ConfigurationError(f"{name} is not a valid address: '{value}'")
    return to_checksum_address(value)


def _parse_number(value: typing.Any, name: str, cast=float) -> Optional[typing.Any]:
    if value is None or str(value).strip() == "":
        return None
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number; got '{value}'")
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive; got '{value}'")
    return number


class UpgradeConfig:
    """
    Immutable description of an upgrade run: which modules to upgrade, where their
    proxies live, which implementation each beacon should adopt, and run-wide settings.
    Built once at the process boundary and passed into the orchestrator.
    """

    def __init__(
        self,
        modules: Mapping[str, ModuleConfig],
        safety_checks: bool = True,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        chain_id: Optional[int] = None,
        max_fee: Optional[float] = None,
        max_priority_fee: Optional[float] = None,
    ):
        unknown = [name for name in modules if name not in UPGRADE_ORDER]
        if unknown:
            raise ConfigurationError(
                f"Unknown module(s) {', '.join(unknown)}; "
                f"expected one of {', '.join(UPGRADE_ORDER)}"
            )
        # normalize to the fixed upgrade order; unlisted modules are disabled
        self._modules = OrderedDict(
            (name, modules.get(name, ModuleConfig())) for name in UPGRADE_ORDER
        )
        self._safety_checks = safety_checks
        self._confirmation_timeout = confirmation_timeout
        self._chain_id = chain_id
        self._max_fee = max_fee
        self._max_priority_fee = max_priority_fee

    @property
    def modules(self) -> Dict[str, ModuleConfig]:
        return OrderedDict(self._modules)

    @property
    def safety_checks(self) -> bool:
        return self._safety_checks

    @property
    def confirmation_timeout(self) -> float:
        return self._confirmation_timeout

    @property
    def chain_id(self) -> Optional[int]:
        return self._chain_id

    @property
    def max_fee(self) -> Optional[float]:
        return self._max_fee

    @property
    def max_priority_fee(self) -> Optional[float]:
        return self._max_priority_fee

    @property
    def enabled_modules(self) -> List[str]:
        return [name for name, module in self._modules.items() if module.enabled]

    def validate(self) -> None:
        """
        Checks that every enabled module has the addresses it needs.
        A missing address is a configuration error, never a skip.
        """
        for name, module in self._modules.items():
            if not module.enabled:
                continue
            if not module.proxy_address:
                raise ConfigurationError(f"{name} is enabled but no proxy address was provided.")
            if not module.implementation_address:
                raise ConfigurationError(
                    f"{name} is enabled but no new implementation address was provided."
                )

    def replace(self, **overrides) -> "UpgradeConfig":
        """Returns a new config with the given settings replaced."""
        settings = dict(
            modules=self._modules,
            safety_checks=self._safety_checks,
            confirmation_timeout=self._confirmation_timeout,
            chain_id=self._chain_id,
            max_fee=self._max_fee,
            max_priority_fee=self._max_priority_fee,
        )
        settings.update(overrides)
        return UpgradeConfig(**settings)

    def restricted_to(self, module_names: typing.Iterable[str]) -> "UpgradeConfig":
        """Returns a copy of this config with every module outside `module_names` disabled."""
        module_names = list(module_names)
        unknown = [name for name in module_names if name not in UPGRADE_ORDER]
        if unknown:
            raise ConfigurationError(f"Unknown module(s) {', '.join(unknown)}")
        modules = OrderedDict()
        for name, module in self._modules.items():
            if name not in module_names:
                module = module._replace(enabled=False)
            modules[name] = module
        return self.replace(modules=modules)

    def check_chain_id(self, chain_id: int) -> None:
        if self._chain_id is not None and int(self._chain_id) != int(chain_id):
            raise ConfigurationError(
                f"chain_id in config ({self._chain_id}) does not match "
                f"chain_id of current network ({chain_id})."
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "UpgradeConfig":
        """Builds the config from environment-style variables."""
        modules = OrderedDict()
        for name in UPGRADE_ORDER:
            prefix = MODULE_ENV_PREFIXES[name]
            enable_var = ENABLE_MODULE_ENVVAR_TEMPLATE.format(prefix=prefix)
            proxy_var = PROXY_ADDRESS_ENVVAR_TEMPLATE.format(prefix=prefix)
            implementation_var = IMPLEMENTATION_ADDRESS_ENVVAR_TEMPLATE.format(prefix=prefix)
            modules[name] = ModuleConfig(
                enabled=parse_bool(environ.get(enable_var, "false"), enable_var),
                proxy_address=parse_address(environ.get(proxy_var), proxy_var),
                implementation_address=parse_address(
                    environ.get(implementation_var), implementation_var
                ),
            )

        timeout = _parse_number(
            environ.get(CONFIRMATION_TIMEOUT_ENVVAR), CONFIRMATION_TIMEOUT_ENVVAR
        )
        config = cls(
            modules=modules,
            safety_checks=parse_bool(
                environ.get(SAFETY_CHECKS_ENVVAR, "true"), SAFETY_CHECKS_ENVVAR
            ),
            confirmation_timeout=timeout or DEFAULT_CONFIRMATION_TIMEOUT,
            max_fee=_parse_number(environ.get(MAX_FEE_ENVVAR), MAX_FEE_ENVVAR),
            max_priority_fee=_parse_number(
                environ.get(MAX_PRIORITY_FEE_ENVVAR), MAX_PRIORITY_FEE_ENVVAR
            ),
        )
        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: typing.Dict) -> "UpgradeConfig":
        """Builds the config from a parsed params file."""
        if not isinstance(data, dict):
            raise ConfigurationError("Malformed upgrade params; expected a mapping.")

        raw_modules = data.get("modules")
        if not raw_modules:
            raise ConfigurationError("'modules' is not set in params file.")
        if not isinstance(raw_modules, dict):
            raise ConfigurationError("Malformed 'modules' entry in params file.")

        modules = OrderedDict()
        for name, entry in raw_modules.items():
            entry = entry or dict()
            if not isinstance(entry, dict):
                raise ConfigurationError(f"Malformed params for module {name}.")
            modules[name] = ModuleConfig(
                enabled=parse_bool(entry.get("enabled", False), f"{name}.enabled"),
                proxy_address=parse_address(entry.get("proxy"), f"{name}.proxy"),
                implementation_address=parse_address(
                    entry.get("implementation"), f"{name}.implementation"
                ),
            )

        deployment = data.get("deployment") or dict()
        if not isinstance(deployment, dict):
            raise ConfigurationError("Malformed 'deployment' entry in params file.")
        chain_id = deployment.get("chain_id")
        if chain_id is not None:
            chain_id = int(_parse_number(chain_id, "deployment.chain_id", cast=int))

        timeout = _parse_number(data.get("confirmation_timeout"), "confirmation_timeout")
        gas = data.get("gas") or dict()
        if not isinstance(gas, dict):
            raise ConfigurationError("Malformed 'gas' entry in params file.")
        config = cls(
            modules=modules,
            safety_checks=parse_bool(data.get("safety_checks", True), "safety_checks"),
            confirmation_timeout=timeout or DEFAULT_CONFIRMATION_TIMEOUT,
            chain_id=chain_id,
            max_fee=_parse_number(gas.get("max_fee"), "gas.max_fee"),
            max_priority_fee=_parse_number(gas.get("max_priority_fee"), "gas.max_priority_fee"),
        )
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, filepath: Path) -> "UpgradeConfig":
        print(f"Loading upgrade params from {filepath}...")
        return cls.from_dict(_load_yaml(filepath))

    def __repr__(self) -> str:
        enabled = ", ".join(self.enabled_modules) or "none"
        return f"UpgradeConfig(enabled=[{enabled}], safety_checks={self._safety_checks})"
