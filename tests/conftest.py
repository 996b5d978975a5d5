from collections import defaultdict

import pytest
from eth_abi import decode, encode
from eth_utils import keccak, to_checksum_address
from eth_utils.abi import function_abi_to_4byte_selector
from hexbytes import HexBytes

from eutopia_deployment.abi import decode_address, get_input_types
from eutopia_deployment.constants import (
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    EMPTY_SLOT,
    PROXY_ADMIN_NAME,
    PROXY_NAME,
)
from eutopia_deployment.exceptions import DeploymentFailed
from eutopia_deployment.models import ContractArtifact
from eutopia_deployment.params import DeploymentConfig
from eutopia_deployment.provider import Deployment, NetworkProvider, Receipt

# Common constants
LOCAL_CHAIN_ID = 1337

DEPLOYER = to_checksum_address("0x" + "d0" * 20)
OWNER = to_checksum_address("0x" + "aa" * 20)
ROUTER = to_checksum_address("0x" + "bb" * 20)
TREASURY = to_checksum_address("0x" + "cc" * 20)
LIQUIDITY = to_checksum_address("0x" + "dd" * 20)
ESSR = to_checksum_address("0x" + "ee" * 20)
SOMEONE_ELSE = to_checksum_address("0x" + "5e" * 20)

INITIALIZER_PARAMS = {
    "initialOwner": OWNER,
    "router": ROUTER,
    "liquidityReceiver": LIQUIDITY,
    "treasuryReceiver": TREASURY,
    "essrReceiver": ESSR,
}


def _function(name, inputs=(), outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t, "internalType": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t, "internalType": t} for n, t in outputs],
        "stateMutability": mutability,
    }


def _constructor(inputs=()):
    return {
        "type": "constructor",
        "inputs": [{"name": n, "type": t, "internalType": t} for n, t in inputs],
        "stateMutability": "nonpayable",
    }


EUTOPIA_ABI = [
    _constructor(),
    _function("initialize", [(name, "address") for name in INITIALIZER_PARAMS]),
    _function("name", outputs=[("", "string")], mutability="view"),
    _function("treasuryReceiver", outputs=[("", "address")], mutability="view"),
    _function("setTreasuryReceiver", [("receiver", "address")]),
]

PROXY_ABI = [
    _constructor([("_logic", "address"), ("initialOwner", "address"), ("_data", "bytes")]),
    {"type": "fallback", "stateMutability": "payable"},
]

PROXY_ADMIN_ABI = [
    _constructor([("initialOwner", "address")]),
    _function("owner", outputs=[("", "address")], mutability="view"),
    _function(
        "upgradeAndCall",
        [("proxy", "address"), ("implementation", "address"), ("data", "bytes")],
        mutability="payable",
    ),
]


def _word(address) -> bytes:
    return bytes(HexBytes(address)).rjust(32, b"\x00")


def selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


class FakeNetwork(NetworkProvider):
    """
    In-memory chain that mimics OpenZeppelin transparent proxies closely enough
    to exercise deployments, upgrades and EIP1967 slot reads.
    """

    def __init__(self, deployer=DEPLOYER, chain_id=LOCAL_CHAIN_ID, local=True):
        self._deployer = deployer
        self._chain_id = chain_id
        self._local = local
        self._nonce = 0
        self.block_number = 0
        self.code = dict()
        self.artifacts = dict()
        self.storage = defaultdict(dict)
        self.state = defaultdict(dict)
        self.journal = list()
        self.failing = set()  # contract or method names whose transactions revert

    @property
    def chain_id(self):
        return self._chain_id

    @property
    def deployer_address(self):
        return self._deployer

    @property
    def is_local(self):
        return self._local

    def _new_address(self):
        self._nonce += 1
        return to_checksum_address(keccak(text=f"{self._deployer}:{self._nonce}")[-20:])

    def _mine(self):
        self.block_number += 1
        return "0x" + bytes(keccak(text=str(self.block_number))).hex()

    def get_storage_at(self, address, slot):
        self.journal.append(("storage", address, slot))
        return self.storage[address].get(slot, EMPTY_SLOT)

    def get_code(self, address):
        return self.code.get(address, b"")

    def call(self, address, data):
        data = bytes(data)
        if "owner" in self.state[address] and data[:4] == selector("owner()"):
            return encode(["address"], [self.state[address]["owner"]])
        if "implementation" in self.state[address] and data[:4] == selector("implementation()"):
            return encode(["address"], [self.state[address]["implementation"]])

        implementation = decode_address(self.storage[address].get(EIP1967_IMPLEMENTATION_SLOT, EMPTY_SLOT))
        abi = self._find_abi(implementation, data[:4])
        value = self.state[address][abi["name"]]
        return encode([o["type"] for o in abi["outputs"]], [value])

    def deploy(self, artifact, *args):
        self.journal.append(("deploy", artifact.name))
        if artifact.name in self.failing:
            raise DeploymentFailed(f"Deployment of {artifact.name} failed: insufficient funds for gas")

        address = self._new_address()
        self.code[address] = bytes(artifact.bytecode)
        self.artifacts[address] = artifact
        if artifact.name == PROXY_NAME:
            logic, owner, data = args
            admin = self._new_address()
            self.code[admin] = b"\x60\x80\x60\x40"
            self.state[admin]["owner"] = owner
            self.storage[address][EIP1967_IMPLEMENTATION_SLOT] = _word(logic)
            self.storage[address][EIP1967_ADMIN_SLOT] = _word(admin)
            if data:
                self._execute(address, logic, data)

        return Deployment(address=address, tx_hash=self._mine(), block_number=self.block_number)

    def transact(self, artifact, address, method_name, *args):
        self.journal.append(("transact", artifact.name, method_name))
        if method_name in self.failing:
            raise DeploymentFailed(f"{artifact.name}.{method_name} failed: execution reverted")

        if method_name == "upgradeAndCall":
            proxy, implementation, data = args
            if self.storage[proxy].get(EIP1967_ADMIN_SLOT) != _word(address):
                raise DeploymentFailed("execution reverted: ProxyDeniedAdminAccess()")
            if not self.code.get(implementation):
                raise DeploymentFailed("execution reverted: ERC1967InvalidImplementation()")
            self.storage[proxy][EIP1967_IMPLEMENTATION_SLOT] = _word(implementation)
            if data:
                self._execute(proxy, implementation, data)
        else:
            implementation = decode_address(self.storage[address][EIP1967_IMPLEMENTATION_SLOT])
            abi = artifact.get_method_abis(method_name)[0]
            data = function_abi_to_4byte_selector(abi) + encode(get_input_types(abi), list(args))
            self._execute(address, implementation, data)

        return Receipt(tx_hash=self._mine(), block_number=self.block_number)

    def _find_abi(self, implementation, method_selector):
        artifact = self.artifacts.get(implementation)
        if artifact is not None:
            for abi in artifact.abi:
                if abi["type"] == "function" and function_abi_to_4byte_selector(abi) == method_selector:
                    return abi
        raise DeploymentFailed("execution reverted")

    def _execute(self, proxy, implementation, data):
        """Runs `data` with the logic of `implementation` against the storage of `proxy`."""
        data = bytes(data)
        abi = self._find_abi(implementation, data[:4])
        values = decode(get_input_types(abi), data[4:])
        values = [
            to_checksum_address(v) if t == "address" else v
            for t, v in zip(get_input_types(abi), values)
        ]
        state = self.state[proxy]
        if abi["name"] == "initialize":
            if state.get("initialized"):
                raise DeploymentFailed("execution reverted: InvalidInitialization()")
            state["initialized"] = True
            state["name"] = "Eutopia"
            for abi_input, value in zip(abi["inputs"], values):
                state[abi_input["name"]] = value
        elif abi["name"].startswith("set"):
            field = abi["name"][3].lower() + abi["name"][4:]
            state[field] = values[0]
        else:
            raise DeploymentFailed(f"execution reverted: {abi['name']}")

    def read(self, address, method_signature, result_type):
        (value,) = decode([result_type], self.call(address, selector(method_signature)))
        return value


# Fixtures


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture(scope="session")
def eutopia_artifact():
    return ContractArtifact(name="Eutopia", abi=EUTOPIA_ABI, bytecode=HexBytes("0x6080604052" + "ab" * 32))


@pytest.fixture(scope="session")
def proxy_artifact():
    return ContractArtifact(name=PROXY_NAME, abi=PROXY_ABI, bytecode=HexBytes("0x60806040" + "cd" * 16))


@pytest.fixture(scope="session")
def proxy_admin_artifact():
    return ContractArtifact(name=PROXY_ADMIN_NAME, abi=PROXY_ADMIN_ABI, bytecode=HexBytes("0x60806040ef"))


@pytest.fixture(scope="session")
def resolve_artifact(eutopia_artifact, proxy_artifact, proxy_admin_artifact):
    artifacts = {
        artifact.name: artifact
        for artifact in (eutopia_artifact, proxy_artifact, proxy_admin_artifact)
    }

    def _resolve(contract_name):
        try:
            return artifacts[contract_name]
        except KeyError:
            raise ValueError(f"No contract found with name '{contract_name}'.")

    return _resolve


@pytest.fixture
def deploy_config():
    return DeploymentConfig.from_dict(
        {
            "deployment": {"name": "eutopia-test", "chain_id": LOCAL_CHAIN_ID},
            "contract": "Eutopia",
            "initializer": dict(INITIALIZER_PARAMS),
        },
        autosign=True,
    )
