import typing
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from eth_typing import ChecksumAddress


@dataclass(frozen=True)
class DeploymentRequest:
    """A contract to deploy, by artifact name, with its ordered constructor arguments."""

    contract_name: str
    constructor_args: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.contract_name, str) or not self.contract_name.strip():
            raise ValueError("contract_name must be a non-empty string.")
        object.__setattr__(self, "constructor_args", tuple(self.constructor_args))


class DeploymentResult(typing.NamedTuple):
    """A confirmed contract deployment."""

    address: ChecksumAddress
    transaction_hash: str
    contract_name: Optional[str] = None
    block_number: Optional[int] = None
    chain_id: Optional[int] = None
    deployer: Optional[str] = None
