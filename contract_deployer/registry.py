import json
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple

from ape.logging import logger
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import ContractType

from contract_deployer.types import DeploymentResult
from contract_deployer.utils import _load_json

ChainId = int
ContractName = str
ABI = List[Dict[str, Any]]


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single entry in a contract registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def get_abi(contract_type: ContractType) -> ABI:
    """Returns the JSON ABI of a contract type."""
    contract_abi = list()
    for entry in contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True, exclude_none=True))
    return contract_abi


def _get_entry(result: DeploymentResult, abi: ABI) -> RegistryEntry:
    entry = RegistryEntry(
        name=result.contract_name,
        address=to_checksum_address(result.address),
        abi=abi,
        chain_id=result.chain_id,
        tx_hash=result.transaction_hash,
        block_number=result.block_number,
        deployer=result.deployer,
    )
    return entry


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path) -> Path:
    """Writes a contract registry to a file."""

    if not entries:
        logger.warning("No registry entries provided.")
        return filepath

    # Sort registry entries to enforce common order
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    # Create the parent directory if it does not exist
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # If the file already exists, attempt to merge the data, if not create a new file
    if filepath.exists():
        logger.info(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)

        if any(chain_id in existing_data for chain_id in data):
            filepath = filepath.with_suffix(".unmerged.json")
            logger.warning(
                "Cannot merge registries with overlapping chain IDs. "
                f"Writing to {filepath} to avoid overwriting existing data."
            )
        else:
            existing_data.update(data)
            data = existing_data
    else:
        logger.info(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_results(
    results: List[DeploymentResult],
    abis: Dict[ContractName, ABI],
    output_filepath: Path,
) -> Path:
    """Creates a contract registry from deployment results."""
    entries = [_get_entry(result=result, abi=abis[result.contract_name]) for result in results]
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    logger.success(f"Registry written to {output_filepath}")
    return output_filepath
