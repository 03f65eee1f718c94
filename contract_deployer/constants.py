from pathlib import Path

import contract_deployer

#
# Filesystem
#

DEPLOYMENT_DIR = Path(contract_deployer.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

# compiled contract output (hardhat `artifacts/`, ape `.build/`)
BUILD_DIRS = [Path("artifacts"), Path(".build")]

DEFAULT_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "market.yml"

#
# Networks
#

LOCAL_NETWORKS = ["local"]

DEFAULT_NETWORK = "ethereum:local"

#
# Contracts
#

EMPTY_BYTECODE = "0x"
