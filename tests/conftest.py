import json

import pytest

from contract_deployer.contracts import ContractArtifacts

OWNER = "0x1a503f080c8ba51cc517e610f9b9b622a1596917"
DEPLOYER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
CONTRACT_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
TXN_HASH = "0x" + "ab" * 32
CHAIN_ID = 1337

# constructor(address owner) stores the owner; any call returns it
MARKET_BYTECODE = (
    "0x60206024600039600051600055600b6019600039600b6000f3"
    "6000546000526020"
    "6000f3"
)

MARKET_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "owner", "type": "address"}],
        "stateMutability": "nonpayable",
        "type": "constructor",
    },
    {
        "inputs": [],
        "name": "owner",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

VAULT_ABI = [
    {
        "inputs": [
            {"internalType": "address[]", "name": "keepers", "type": "address[]"},
            {"internalType": "uint256", "name": "limit", "type": "uint256"},
            {"internalType": "string", "name": "label", "type": "string"},
        ],
        "stateMutability": "nonpayable",
        "type": "constructor",
    },
]


def _hardhat_artifact(name, abi, bytecode):
    return {
        "_format": "hh-sol-artifact-1",
        "contractName": name,
        "sourceName": f"contracts/{name}.sol",
        "abi": abi,
        "bytecode": bytecode,
        "deployedBytecode": bytecode,
        "linkReferences": {},
        "deployedLinkReferences": {},
    }


def write_artifact(build_dir, name, abi, bytecode=MARKET_BYTECODE, subdir=None):
    subdir = subdir or f"contracts/{name}.sol"
    filepath = build_dir / subdir / f"{name}.json"
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(json.dumps(_hardhat_artifact(name, abi, bytecode)))
    return filepath


class FakeReceipt:
    def __init__(self, txn_hash=TXN_HASH, block_number=7):
        self.txn_hash = txn_hash
        self.block_number = block_number


class FakeInstance:
    def __init__(self, address=CONTRACT_ADDRESS, txn_hash=TXN_HASH):
        self.address = address
        self.txn_hash = txn_hash


class FakeChain:
    """Stands in for ape's chain manager; serves receipts by transaction hash."""

    def __init__(self, chain_id=CHAIN_ID):
        self.chain_id = chain_id
        self.receipts = {TXN_HASH: FakeReceipt()}

    def get_receipt(self, txn_hash):
        return self.receipts[txn_hash]


class FakeAccount:
    """Stands in for an ape account; records deployments instead of sending them."""

    def __init__(self, address=DEPLOYER_ADDRESS):
        self.address = address
        self.deployments = []
        self.error = None
        self.instance = FakeInstance()
        self.autosign = False

    def set_autosign(self, enabled, passphrase=None):
        self.autosign = enabled

    def deploy(self, container, *args, **kwargs):
        self.deployments.append((container, args, kwargs))
        if self.error is not None:
            raise self.error
        return self.instance


# Fixtures
@pytest.fixture
def build_dir(tmp_path):
    build_dir = tmp_path / "artifacts"
    write_artifact(build_dir, "Market", MARKET_ABI)
    write_artifact(build_dir, "Vault", VAULT_ABI)
    write_artifact(build_dir, "IMarket", MARKET_ABI[1:], bytecode="0x")
    return build_dir


@pytest.fixture
def artifacts(build_dir):
    return ContractArtifacts(build_dirs=[build_dir])


@pytest.fixture
def account():
    return FakeAccount()


@pytest.fixture
def local_network(monkeypatch):
    monkeypatch.setattr("contract_deployer.utils.is_local_network", lambda: True)
    monkeypatch.setattr("contract_deployer.utils.get_chain_id", lambda: CHAIN_ID)
    monkeypatch.setattr("contract_deployer.params.chain", FakeChain())


@pytest.fixture
def live_network(monkeypatch):
    monkeypatch.setattr("contract_deployer.utils.is_local_network", lambda: False)
    monkeypatch.setattr("contract_deployer.utils.get_chain_id", lambda: CHAIN_ID)
    monkeypatch.setattr("contract_deployer.params.chain", FakeChain())


@pytest.fixture
def config(tmp_path):
    return {
        "deployment": {"name": "market", "chain_id": CHAIN_ID},
        "artifacts": {"dir": str(tmp_path / "registry"), "filename": "market.json"},
        "constants": {"OWNER": OWNER},
        "contracts": [{"Market": {"constructor": {"owner": "$OWNER"}}}],
    }
