import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, Mapping, NamedTuple, Optional

import yaml
from eth_abi import is_encodable
from eth_typing import ChecksumAddress
from eth_utils import is_hex_address, to_checksum_address

from eutopia_deployment.abi import get_input_types
from eutopia_deployment.constants import (
    DEFAULT_CONTRACT_NAME,
    DEFAULT_INITIALIZER,
    ETHERSCAN_API_KEY_ENVVAR,
    EXPLORER_API_URLS,
    ZERO_ADDRESS,
)
from eutopia_deployment.exceptions import ConfigurationError
from eutopia_deployment.models import (
    ContractArtifact,
    DeploymentTarget,
    NewProxy,
    UpgradeExisting,
)

VARIABLE_PREFIX = "$"
DEPLOYER_INDICATOR = "deployer"


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file) or dict()


class VariableContext:
    """Everything a `$variable` in a params file can resolve to."""

    def __init__(
        self,
        constants: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
        deployer_address: Optional[ChecksumAddress] = None,
    ):
        self.constants = constants or dict()
        self.environ = environ or dict()
        self.deployer_address = deployer_address

    def resolve_variable(self, variable: str) -> Any:
        if variable == DEPLOYER_INDICATOR:
            if self.deployer_address is None:
                return ZERO_ADDRESS  # eager validation, no account yet
            return self.deployer_address
        if not variable.isupper():
            raise ConfigurationError(f"Variable ${variable} is not resolvable")
        if variable in self.constants:
            return self.constants[variable]
        if variable in self.environ:
            return self.environ[variable]
        raise ConfigurationError(
            f"Variable ${variable} is neither a deployment constant nor an environment variable"
        )


def is_variable(param: Any) -> bool:
    """Returns True if the param is a variable."""
    return isinstance(param, str) and param.startswith(VARIABLE_PREFIX)


def resolve_param(value: Any, context: VariableContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [resolve_param(v, context) for v in value]

    if is_variable(value):
        value = context.resolve_variable(value[len(VARIABLE_PREFIX) :])

    if isinstance(value, str) and is_hex_address(value):
        return to_checksum_address(value)
    return value


def resolve_params(parameters: Mapping[str, Any], context: VariableContext) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = resolve_param(value, context)
    return resolved_parameters


def to_address(value: Any, description: str = "address") -> ChecksumAddress:
    """Checksums a resolved address; unquoted hex addresses are loaded by YAML as integers."""
    if isinstance(value, int) and not isinstance(value, bool):
        if not 0 <= value < 2**160:
            raise ConfigurationError(f"Invalid {description} {hex(value)}")
        return to_checksum_address(value.to_bytes(20, "big"))
    if not isinstance(value, str) or not is_hex_address(value):
        raise ConfigurationError(f"Invalid {description} '{value}'")
    return to_checksum_address(value)


def validate_initializer_parameters(
    artifact: ContractArtifact, initializer: str, parameters: OrderedDict
) -> None:
    """Validates resolved initializer parameters against the initializer ABI."""
    method_abis = artifact.get_method_abis(initializer)
    if not method_abis:
        raise ConfigurationError(f"{artifact.name} has no initializer named '{initializer}'")

    matching = [abi for abi in method_abis if len(abi["inputs"]) == len(parameters)]
    if not matching:
        expected = ", ".join(str(len(abi["inputs"])) for abi in method_abis)
        raise ConfigurationError(
            f"Initializer parameters length mismatch - "
            f"{artifact.name}.{initializer} requires {expected}, Got {len(parameters)}."
        )

    abi_inputs = matching[0]["inputs"]
    input_types = get_input_types(matching[0])
    codex = enumerate(zip(abi_inputs, input_types, parameters.items()), start=0)
    for position, (abi_input, abi_type, (name, value)) in codex:
        # validate name
        if abi_input.get("name") and abi_input["name"] != name:
            raise ConfigurationError(
                f"{artifact.name} initializer parameter '{name}' at position {position} does not "
                f"match the expected ABI name '{abi_input['name']}'."
            )

        # validate value type
        if not is_encodable(abi_type, value):
            raise ConfigurationError(
                f"Initializer param name '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_type}'"
            )


class VerificationConfig(NamedTuple):
    enabled: bool = False
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    link_proxy: bool = False


class DeploymentConfig(NamedTuple):
    """
    Resolved deployment parameters for a single orchestrator run.

    A config with a `proxy_address` upgrades that proxy; otherwise a new proxy
    is deployed and initialized with `initializer_params`, in order.
    """

    name: str
    chain_id: Optional[int]
    contract_name: str
    proxy_address: Optional[ChecksumAddress] = None
    initializer: str = DEFAULT_INITIALIZER
    initializer_params: Optional[typing.OrderedDict[str, Any]] = None
    initial_owner: Optional[ChecksumAddress] = None
    verification: VerificationConfig = VerificationConfig()
    autosign: bool = False

    @property
    def target(self) -> DeploymentTarget:
        if self.proxy_address:
            return UpgradeExisting(proxy_address=self.proxy_address)
        return NewProxy(constructor_args=tuple((self.initializer_params or dict()).values()))

    @property
    def is_upgrade(self) -> bool:
        return isinstance(self.target, UpgradeExisting)

    def with_proxy_address(self, proxy_address: ChecksumAddress) -> "DeploymentConfig":
        return self._replace(
            proxy_address=to_address(proxy_address, "proxy address"), initializer_params=None
        )

    def with_verification(self, enabled: bool) -> "DeploymentConfig":
        return self._replace(verification=self.verification._replace(enabled=enabled))

    def check_chain_id(self, chain_id: int, is_local: bool = False) -> None:
        if self.chain_id is None or is_local:
            return
        if int(self.chain_id) != int(chain_id):
            raise ConfigurationError(
                f"chain_id in params file ({self.chain_id}) does not match "
                f"chain_id of current network ({chain_id})."
            )

    @classmethod
    def from_yaml(cls, filepath: Path, **kwargs) -> "DeploymentConfig":
        print(f"Processing deployment parameters from {filepath}...")
        return cls.from_dict(_load_yaml(filepath), **kwargs)

    @classmethod
    def from_dict(
        cls,
        config: Mapping[str, Any],
        environ: Optional[Mapping[str, str]] = None,
        deployer_address: Optional[ChecksumAddress] = None,
        proxy_address: Optional[ChecksumAddress] = None,
        autosign: bool = False,
    ) -> "DeploymentConfig":
        """`proxy_address` takes precedence over the address in the params file."""
        deployment = config.get("deployment") or dict()
        if not isinstance(deployment, dict):
            raise ConfigurationError("Malformed 'deployment' section in params file.")
        chain_id = deployment.get("chain_id")

        context = VariableContext(
            constants=config.get("constants"),
            environ=environ,
            deployer_address=deployer_address,
        )

        proxy_config = config.get("proxy") or dict()
        if not isinstance(proxy_config, dict):
            raise ConfigurationError("Malformed 'proxy' section in params file.")

        proxy_address = proxy_address or proxy_config.get("address")
        initializer_params = None
        if proxy_address:
            # the initializer is never called on upgrades; its variables stay unresolved
            proxy_address = to_address(resolve_param(proxy_address, context), "proxy address")
        else:
            raw_params = config.get("initializer") or OrderedDict()
            if not isinstance(raw_params, dict):
                raise ConfigurationError(
                    "Initializer parameters must be an ordered mapping of name to value."
                )
            initializer_params = resolve_params(raw_params, context)

        initial_owner = proxy_config.get("initial_owner")
        if initial_owner:
            initial_owner = to_address(resolve_param(initial_owner, context), "initial owner")

        return cls(
            name=deployment.get("name", "eutopia"),
            chain_id=int(chain_id) if chain_id is not None else None,
            contract_name=config.get("contract", DEFAULT_CONTRACT_NAME),
            proxy_address=proxy_address or None,
            initializer=proxy_config.get("initializer", DEFAULT_INITIALIZER),
            initializer_params=initializer_params,
            initial_owner=initial_owner or None,
            verification=cls._verification_config(config, chain_id, context),
            autosign=autosign,
        )

    @classmethod
    def _verification_config(
        cls, config: Mapping[str, Any], chain_id: Optional[int], context: VariableContext
    ) -> VerificationConfig:
        verification = config.get("verification") or dict()
        api_url = verification.get("api_url")
        if not api_url and chain_id is not None:
            api_url = EXPLORER_API_URLS.get(int(chain_id))
        api_key = verification.get("api_key")
        if api_key:
            api_key = resolve_param(api_key, context)
        else:
            api_key = context.environ.get(ETHERSCAN_API_KEY_ENVVAR)
        return VerificationConfig(
            enabled=bool(verification.get("enabled", False)),
            api_url=resolve_param(api_url, context) if api_url else None,
            api_key=api_key,
            link_proxy=bool(verification.get("link_proxy", False)),
        )
