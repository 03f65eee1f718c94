from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ape import project
from ape.contracts import ContractContainer
from ethpm_types import ContractType

from contract_deployer.constants import BUILD_DIRS, EMPTY_BYTECODE
from contract_deployer.exceptions import ArtifactNotFound
from contract_deployer.utils import _load_json


def _contract_type_from_artifact(data: Dict, filepath: Path) -> ContractType:
    """
    Builds a ContractType from either an ethPM/ape artifact or a hardhat artifact.
    """
    if not isinstance(data, dict):
        raise ArtifactNotFound(f"Malformed contract artifact at {filepath}: not a JSON object.")
    if "deploymentBytecode" in data:
        return ContractType.model_validate(data)

    try:
        artifact = {
            "contractName": data["contractName"],
            "sourceId": data.get("sourceName"),
            "abi": data["abi"],
            "deploymentBytecode": {"bytecode": data["bytecode"]},
        }
    except KeyError as e:
        raise ArtifactNotFound(f"Malformed contract artifact at {filepath}: missing {e}.") from e
    if data.get("deployedBytecode") is not None:
        artifact["runtimeBytecode"] = {"bytecode": data["deployedBytecode"]}
    return ContractType.model_validate(artifact)


def _is_deployable(contract_type: ContractType) -> bool:
    bytecode = contract_type.deployment_bytecode
    if bytecode is None or not bytecode.bytecode:
        return False
    return bytecode.bytecode != EMPTY_BYTECODE


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ArtifactNotFound(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ArtifactNotFound(f"No contract found with name '{contract}'.")


def _get_project_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


class ContractArtifacts:
    """
    Resolves contract names to deployable contract containers.

    Compiled artifacts are looked up by filename (``<name>.json``) in the build
    directories; optionally the ape project (and its dependencies) is searched last.
    """

    def __init__(self, build_dirs: Optional[Iterable[Path]] = None, use_project: bool = False):
        if build_dirs is None:
            build_dirs = BUILD_DIRS
        self.build_dirs = [Path(d) for d in build_dirs]
        self.use_project = use_project
        self._containers: Dict[str, ContractContainer] = dict()

    def _find_artifacts(self, contract_name: str) -> List[Path]:
        filename = f"{contract_name}.json"
        matches = list()
        for build_dir in self.build_dirs:
            if not build_dir.is_dir():
                continue
            matches.extend(sorted(build_dir.rglob(filename)))
        return matches

    def _load(self, contract_name: str) -> ContractContainer:
        filepaths = self._find_artifacts(contract_name)
        if len(filepaths) > 1:
            locations = ", ".join(str(p) for p in filepaths)
            raise ArtifactNotFound(
                f"Contract name '{contract_name}' is ambiguous - found {len(filepaths)} "
                f"artifacts: {locations}"
            )

        if filepaths:
            filepath = filepaths[0]
            try:
                contract_type = _contract_type_from_artifact(_load_json(filepath), filepath)
            except (ValueError, TypeError) as e:
                # invalid JSON or an artifact that does not validate as a ContractType
                raise ArtifactNotFound(f"Malformed contract artifact at {filepath}: {e}") from e
            return ContractContainer(contract_type)

        if self.use_project:
            return _get_project_contract_container(contract_name)

        searched = ", ".join(str(d) for d in self.build_dirs)
        raise ArtifactNotFound(f"No artifact found for '{contract_name}' in {searched}.")

    def get_contract_container(self, contract_name: str) -> ContractContainer:
        """Returns the contract container for a contract name."""
        if not contract_name:
            raise ArtifactNotFound("Contract name must not be empty.")

        container = self._containers.get(contract_name)
        if container is not None:
            return container

        container = self._load(contract_name)
        if not _is_deployable(container.contract_type):
            raise ArtifactNotFound(
                f"Artifact for '{contract_name}' has no deployment bytecode "
                "(abstract contract or interface?)."
            )

        self._containers[contract_name] = container
        return container
