import keyword
import typing
from abc import ABC, abstractmethod
from collections import OrderedDict, namedtuple
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from ape import chain
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape.contracts import ContractContainer, ContractInstance
from ape.exceptions import (
    ApeException,
    ArgumentsLengthError,
    ConversionError,
    TransactionNotFoundError,
)
from ape.logging import logger
from ape.utils import ZERO_ADDRESS
from eth_utils import is_address, to_checksum_address, to_hex
from ethpm_types import ContractType
from web3 import Web3

from contract_deployer.confirm import _confirm_resolution, _continue
from contract_deployer.contracts import ContractArtifacts
from contract_deployer.exceptions import (
    ArgumentMismatch,
    ConfirmationTimeout,
    DeploymentConfigError,
    SubmissionFailed,
)
from contract_deployer.registry import get_abi, registry_from_results
from contract_deployer.types import DeploymentRequest, DeploymentResult
from contract_deployer.utils import (
    _load_yaml,
    check_etherscan_plugin,
    get_build_dirs,
    validate_config,
)

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"

# offline codec used for ABI type checks
w3 = Web3()


class VariableContext:
    def __init__(self, contract_name: str, constants: typing.Dict[str, Any] = None):
        self.contract_name = contract_name
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self) -> Any:
        deployer_account = Deployer.get_account()
        if deployer_account is None:
            return ZERO_ADDRESS
        return deployer_account.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise DeploymentConfigError(
                f"Constant '{constant_name}' for {context.contract_name} "
                "not found in deployment file."
            )

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


def _resolve_param(value: Any) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v) for v in value]

    if isinstance(value, Variable):
        return value.resolve()

    return value  # literally a value


def _resolve_params(parameters: OrderedDict) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    raise DeploymentConfigError(
        f"Unknown variable '${variable}' for {context.contract_name}; "
        "expected $deployer or an upper case constant."
    )


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: typing.Dict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _normalize_value(abi_type: str, value: Any) -> Any:
    """Checksums address values (including address arrays) so they are ABI encodable."""
    if abi_type.endswith("]") and isinstance(value, (list, tuple)):
        element_type = abi_type[: abi_type.rindex("[")]
        return [_normalize_value(element_type, v) for v in value]
    if abi_type == "address" and isinstance(value, str) and is_address(value):
        return to_checksum_address(value)
    return value


def _is_constant_name(name: Any) -> bool:
    if not isinstance(name, str) or keyword.iskeyword(name):
        return False
    return name.isidentifier() and not name.startswith("_")


def validate_constructor_args(
    contract_type: ContractType,
    args: Sequence[Any],
    parameter_names: Optional[Sequence[str]] = None,
) -> Tuple[Any, ...]:
    """
    Validates constructor arguments against the constructor ABI and returns
    them normalized for encoding.
    """
    contract_name = contract_type.name
    abi_inputs = contract_type.constructor.inputs
    if len(args) != len(abi_inputs):
        raise ArgumentMismatch(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(args)}."
        )

    if parameter_names is not None and len(parameter_names) != len(abi_inputs):
        raise ArgumentMismatch(
            f"Constructor parameter names length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(parameter_names)}."
        )

    validated_args = list()
    for position, (abi_input, value) in enumerate(zip(abi_inputs, args)):
        # validate name
        if parameter_names is not None and abi_input.name != parameter_names[position]:
            raise ArgumentMismatch(
                f"{contract_name} constructor parameter '{parameter_names[position]}' at "
                f"position {position} does not match the expected ABI name '{abi_input.name}'."
            )

        # validate value type
        abi_type = abi_input.canonical_type
        value = _normalize_value(abi_type, value)
        if not w3.is_encodable(abi_type, value):
            raise ArgumentMismatch(
                f"{contract_name} constructor param at position {position} has a value "
                f"'{value}' whose type does not match expected ABI type '{abi_type}'"
            )
        validated_args.append(value)

    return tuple(validated_args)


class ConstructorParameters:
    """Represents the constructor parameters for a set of contracts."""

    def __init__(self, parameters: OrderedDict):
        self.parameters = parameters

    @property
    def contract_names(self) -> List[str]:
        return list(self.parameters)

    @classmethod
    def from_config(cls, config: typing.Dict) -> "ConstructorParameters":
        """Loads the constructor parameters from a deployment config."""
        logger.info("Processing contract constructor parameters...")
        contracts_config = OrderedDict()
        constants = config.get("constants")
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                contract_constructor_params = {contract_info: OrderedDict()}
            elif isinstance(contract_info, dict):
                if len(contract_info) != 1:
                    raise DeploymentConfigError("Malformed constructor parameters YAML.")

                contract_name = list(contract_info.keys())[0]  # only one entry
                contract_data = contract_info[contract_name] or dict()
                parameter_values = cls._process_parameters(constants, contract_data, contract_name)

                contract_constructor_params = {contract_name: parameter_values}
            else:
                raise DeploymentConfigError("Malformed constructor parameters YAML.")

            if set(contract_constructor_params) & set(contracts_config):
                raise DeploymentConfigError(
                    f"Contract '{list(contract_constructor_params)[0]}' is declared more than once."
                )
            contracts_config.update(contract_constructor_params)

        return cls(parameters=contracts_config)

    @classmethod
    def _process_parameters(cls, constants, contract_data, contract_name) -> OrderedDict:
        parameter_values = OrderedDict()
        if not isinstance(contract_data, dict):
            raise DeploymentConfigError(
                f"Malformed constructor parameter config for {contract_name}."
            )
        if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in contract_data:
            raw_values = contract_data[CONTRACT_CONSTRUCTOR_PARAMETER_KEY] or dict()
            if not isinstance(raw_values, dict):
                raise DeploymentConfigError(
                    f"Malformed constructor parameter config for {contract_name}."
                )
            parameter_values = _process_raw_values(
                raw_values,
                VariableContext(constants=constants, contract_name=contract_name),
            )
        return parameter_values

    def resolve(self, contract_name: str) -> OrderedDict:
        """Resolves the constructor parameters for a single contract."""
        try:
            parameters = self.parameters[contract_name]
        except KeyError:
            raise DeploymentConfigError(
                f"Contract '{contract_name}' is not declared in the deployment file."
            )
        return _resolve_params(parameters)

    def request(self, contract_name: str) -> Tuple[DeploymentRequest, List[str]]:
        """Returns the deployment request and parameter names for a single contract."""
        resolved_params = self.resolve(contract_name)
        request = DeploymentRequest(
            contract_name=contract_name,
            constructor_args=tuple(resolved_params.values()),
        )
        return request, list(resolved_params)

    def validate(self, artifacts: ContractArtifacts) -> None:
        """Validates the constructor parameters for all contracts against their ABIs."""
        for contract_name in self.contract_names:
            request, parameter_names = self.request(contract_name)
            container = artifacts.get_contract_container(contract_name)
            validate_constructor_args(
                contract_type=container.contract_type,
                args=request.constructor_args,
                parameter_names=parameter_names,
            )


class Deployer:
    """
    Represents an ape account plus
    deployment parameters for a set of contracts, plus validated/annotated execution.
    """

    __DEPLOYER_ACCOUNT: AccountAPI = None

    def __init__(
        self,
        config: typing.Dict,
        path: Optional[Path] = None,
        account: Optional[AccountAPI] = None,
        artifacts: Optional[ContractArtifacts] = None,
        autosign: bool = False,
        verify: bool = False,
        interactive: bool = True,
    ):
        if account is None:
            account = select_account()
        if autosign:
            logger.warning("Autosign is enabled. Transactions will be signed automatically.")
            account.set_autosign(True)
        self._account = account
        self._autosign = autosign
        self._interactive = interactive and not autosign
        self._set_account(account)

        self.path = path
        self.config = config
        self.registry_filepath = validate_config(config=self.config)
        self.artifacts = artifacts or ContractArtifacts(get_build_dirs(config), use_project=True)
        self.constructor_parameters = ConstructorParameters.from_config(self.config)
        self.constructor_parameters.validate(self.artifacts)

        # Little trick to expose constants as attributes (e.g., deployer.constants.FOO)
        constants = config.get("constants") or {}
        invalid = [k for k in constants if not _is_constant_name(k)]
        if invalid:
            raise DeploymentConfigError(
                f"Invalid constant names {invalid}; use identifiers not starting with '_'."
            )
        _Constants = namedtuple("_Constants", list(constants))
        self.constants = _Constants(**constants)

        self.required_confirmations = config["deployment"].get("required_confirmations")
        self.verify = verify
        if verify:
            check_etherscan_plugin()

        self._containers: typing.Dict[str, ContractContainer] = dict()

        if self._interactive:
            # Confirms the start of the deployment.
            _continue()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, *args, **kwargs)

    @classmethod
    def get_account(cls) -> AccountAPI:
        """Returns the deployer account."""
        return cls.__DEPLOYER_ACCOUNT

    @classmethod
    def _set_account(cls, deployer: AccountAPI) -> None:
        """Sets the deployer account."""
        cls.__DEPLOYER_ACCOUNT = deployer

    def _get_kwargs(self) -> typing.Dict[str, Any]:
        """Returns the deployment kwargs."""
        kwargs = {"publish": self.verify}
        if self.required_confirmations is not None:
            kwargs["required_confirmations"] = int(self.required_confirmations)
        return kwargs

    def deploy(
        self, request: DeploymentRequest, parameter_names: Optional[Sequence[str]] = None
    ) -> DeploymentResult:
        """
        Deploys a single contract and blocks until the deployment is confirmed.

        Arguments are validated against the constructor ABI before anything is
        submitted to the network.
        """
        contract_name = request.contract_name
        container = self.artifacts.get_contract_container(contract_name)
        args = validate_constructor_args(
            contract_type=container.contract_type,
            args=request.constructor_args,
            parameter_names=parameter_names,
        )

        if self._interactive:
            abi_inputs = container.contract_type.constructor.inputs
            names = parameter_names or [
                abi_input.name or f"arg{position}" for position, abi_input in enumerate(abi_inputs)
            ]
            _confirm_resolution(OrderedDict(zip(names, args)), contract_name)

        logger.info(f"Deploying {contract_name}...")
        result = self._deploy_contract(contract_name, container, args)
        self._containers[contract_name] = container
        logger.success(f"{contract_name} deployed at {result.address}")
        return result

    def deploy_contract(self, contract_name: str) -> DeploymentResult:
        """Deploys a contract declared in the deployment file."""
        request, parameter_names = self.constructor_parameters.request(contract_name)
        return self.deploy(request, parameter_names=parameter_names)

    def deploy_all(self) -> List[DeploymentResult]:
        """Deploys every contract declared in the deployment file, in order."""
        results = list()
        for contract_name in self.constructor_parameters.contract_names:
            results.append(self.deploy_contract(contract_name))
        return results

    def _deploy_contract(
        self, contract_name: str, container: ContractContainer, args: Tuple[Any, ...]
    ) -> DeploymentResult:
        try:
            instance = self._account.deploy(container, *args, **self._get_kwargs())
            result = self._get_result(contract_name, instance)
        except TransactionNotFoundError as e:
            raise ConfirmationTimeout(
                f"{contract_name} deployment was submitted but not confirmed: {e}"
            ) from e
        except (ArgumentsLengthError, ConversionError) as e:
            raise ArgumentMismatch(f"{contract_name} constructor arguments rejected: {e}") from e
        except ApeException as e:
            raise SubmissionFailed(f"{contract_name} deployment failed: {e}") from e

        return result

    def _get_result(self, contract_name: str, instance: ContractInstance) -> DeploymentResult:
        if not instance.address:
            raise SubmissionFailed(f"{contract_name} deployment produced no contract address.")

        receipt = chain.get_receipt(instance.txn_hash)
        txn_hash = receipt.txn_hash
        if not isinstance(txn_hash, str):
            txn_hash = to_hex(txn_hash)

        return DeploymentResult(
            address=to_checksum_address(instance.address),
            transaction_hash=txn_hash,
            contract_name=contract_name,
            block_number=receipt.block_number,
            chain_id=chain.chain_id,
            deployer=self._account.address,
        )

    def finalize(self, results: List[DeploymentResult]) -> Optional[Path]:
        """Publishes the deployment results to the registry, if one is configured."""
        if self.registry_filepath is None:
            logger.info("No registry configured for this deployment; nothing published.")
            return None

        abis = {
            contract_name: get_abi(container.contract_type)
            for contract_name, container in self._containers.items()
        }
        return registry_from_results(
            results=results,
            abis=abis,
            output_filepath=self.registry_filepath,
        )
