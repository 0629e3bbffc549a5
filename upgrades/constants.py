from pathlib import Path

import upgrades

#
# Filesystem
#

UPGRADES_DIR = Path(upgrades.__file__).parent
PARAMS_DIR = UPGRADES_DIR / "params"

#
# Storage slots
#

# EIP1967 Beacon slot - https://eips.ethereum.org/EIPS/eip-1967#beacon-contract-address
# bytes32(uint256(keccak256('eip1967.proxy.beacon')) - 1)
EIP1967_BEACON_SLOT = 0xA3F0AD74E5423AEBFD80D3EF4346578335A9A72AEAEE59FF6CB3582B35133D50

ZERO_ADDRESS = "0x" + "0" * 40
EMPTY_BYTES32 = b"\x00" * 32

#
# Modules
#

TEE_VERIFIER = "TEEVerifier"
VERIFIER = "Verifier"
AGENT_NFT = "AgentNFT"
AGENT_MARKET = "AgentMarket"

# upgrade order; verifiers first, then the token, then the marketplace that depends on it
UPGRADE_ORDER = [TEE_VERIFIER, VERIFIER, AGENT_NFT, AGENT_MARKET]

# module name -> environment variable prefix
MODULE_ENV_PREFIXES = {
    TEE_VERIFIER: "TEE_VERIFIER",
    VERIFIER: "VERIFIER",
    AGENT_NFT: "AGENT_NFT",
    AGENT_MARKET: "AGENT_MARKET",
}

#
# Environment
#

ENABLE_MODULE_ENVVAR_TEMPLATE = "UPGRADE_{prefix}"
PROXY_ADDRESS_ENVVAR_TEMPLATE = "{prefix}_PROXY_ADDRESS"
IMPLEMENTATION_ADDRESS_ENVVAR_TEMPLATE = "{prefix}_IMPLEMENTATION_ADDRESS"
SAFETY_CHECKS_ENVVAR = "ENABLE_SAFETY_CHECKS"
CONFIRMATION_TIMEOUT_ENVVAR = "CONFIRMATION_TIMEOUT"
MAX_FEE_ENVVAR = "MAX_FEE_GWEI"
MAX_PRIORITY_FEE_ENVVAR = "MAX_PRIORITY_FEE_GWEI"
PROVIDER_URL_ENVVAR = "PROVIDER_URL"
PRIVATE_KEY_ENVVAR = "PRIVATE_KEY"

# 0G Galileo testnet
DEFAULT_PROVIDER_URL = "https://evmrpc-testnet.0g.ai"

#
# Transactions
#

DEFAULT_CONFIRMATION_TIMEOUT = 300  # seconds
RECEIPT_POLL_LATENCY = 2  # seconds

TRUTHY_VALUES = {"true", "1", "yes", "y", "on"}
FALSY_VALUES = {"false", "0", "no", "n", "off", ""}
