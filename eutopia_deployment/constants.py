from pathlib import Path

import eutopia_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(eutopia_deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"

#
# Networks
#

LOCAL_NETWORKS = ["local", "hardhat"]

SEPOLIA_CHAIN_ID = 11155111

# Etherscan-compatible APIs used for proxy linking
EXPLORER_API_URLS = {
    SEPOLIA_CHAIN_ID: "https://api.routescan.io/v2/network/testnet/evm/11155111/etherscan",
}

ETHERSCAN_API_KEY_ENVVAR = "ETHERSCAN_API_KEY"

#
# Contracts
#

DEFAULT_CONTRACT_NAME = "Eutopia"
DEFAULT_INITIALIZER = "initialize"

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_NAME = "TransparentUpgradeableProxy"
PROXY_ADMIN_NAME = "ProxyAdmin"

ZERO_ADDRESS = "0x" + "0" * 40
EMPTY_SLOT = b"\x00" * 32

# EIP1967 slots - https://eips.ethereum.org/EIPS/eip-1967
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103
EIP1967_BEACON_SLOT = 0xA3F0AD74E5423AEBFD80D3EF4346578335A9A72AEAEE59FF6CB3582B35133D50
