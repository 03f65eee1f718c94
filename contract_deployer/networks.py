from ape import networks

from contract_deployer.constants import LOCAL_NETWORKS


def is_local_network() -> bool:
    """Returns True if the connected network is a local development network."""
    return networks.provider.network.name in LOCAL_NETWORKS


def get_chain_id() -> int:
    """Returns the chain ID of the connected network."""
    return networks.provider.chain_id
