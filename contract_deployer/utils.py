import json
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from ape.logging import logger

from contract_deployer.constants import ARTIFACTS_DIR, BUILD_DIRS
from contract_deployer.exceptions import DeploymentConfigError
from contract_deployer.networks import get_chain_id, is_local_network


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_registry_filepath(config: Dict) -> Optional[Path]:
    """Returns the filepath of the registry file, if one is configured."""
    artifact_config = config.get("artifacts") or {}
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        return None
    return artifact_dir / filename


def get_build_dirs(config: Dict) -> List[Path]:
    """Returns the directories searched for compiled contract artifacts."""
    build_config = config.get("build") or {}
    build_dirs = build_config.get("dirs")
    if not build_dirs:
        return list(BUILD_DIRS)
    return [Path(d) for d in build_dirs]


def validate_config(config: Dict) -> Optional[Path]:
    """
    Checks the shape of a deployment parameters file, that it targets the
    connected chain, and that the deployment has not already been published
    for the chain_id specified in the params file.
    """
    logger.info("Validating parameters YAML...")

    if not isinstance(config, dict):
        raise DeploymentConfigError("Parameters file is empty or not a mapping.")

    deployment = config.get("deployment")
    if not deployment:
        raise DeploymentConfigError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise DeploymentConfigError("chain_id is not set in params file.")

    contracts = config.get("contracts")
    if not contracts:
        raise DeploymentConfigError("Constructor parameters file missing 'contracts' field.")

    config_chain_id = int(config_chain_id)
    live_deployment = not is_local_network()
    network_chain_id = get_chain_id()
    if config_chain_id != network_chain_id and live_deployment:
        raise DeploymentConfigError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({network_chain_id})."
        )

    if not live_deployment:
        # local chains are ephemeral; nothing is published for them
        return None

    registry_filepath = get_registry_filepath(config=config)
    if registry_filepath is None or not registry_filepath.exists():
        return registry_filepath

    registry_chain_ids = map(int, _load_json(registry_filepath).keys())
    if config_chain_id in registry_chain_ids:
        raise DeploymentConfigError(
            f"Deployment is already published for chain_id {config_chain_id}."
        )

    return registry_filepath


def check_etherscan_plugin() -> None:
    """Checks that the ape-etherscan plugin is installed for contract verification."""
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        import ape_etherscan  # noqa: F401
    except ImportError as e:
        raise DeploymentConfigError(
            "Please install the ape-etherscan plugin to verify contracts."
        ) from e
