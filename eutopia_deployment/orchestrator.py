import traceback
from typing import Callable, NamedTuple, Optional

from eutopia_deployment.constants import PROXY_ADMIN_NAME, PROXY_NAME
from eutopia_deployment.exceptions import ConfigurationError, DeploymentError, ResolutionFailed
from eutopia_deployment.models import (
    ContractArtifact,
    ImplementationAddress,
    NewProxy,
    ProxyHandle,
    UpgradeExisting,
    VerificationOutcome,
    VerificationRequest,
)
from eutopia_deployment.params import DeploymentConfig, validate_initializer_parameters
from eutopia_deployment.provider import NetworkProvider
from eutopia_deployment.proxy import ProxyDeployer
from eutopia_deployment.resolver import get_implementation_address
from eutopia_deployment.verification import VerificationDriver

ArtifactResolver = Callable[[str], ContractArtifact]

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class RunResult(NamedTuple):
    proxy: ProxyHandle
    implementation: ImplementationAddress
    previous_implementation: Optional[ImplementationAddress] = None
    verification: Optional[VerificationOutcome] = None

    # a confirmed deployment is a success whatever the verification outcome
    exit_code = EXIT_SUCCESS


class Orchestrator:
    """
    Deploys or upgrades the proxied contract described by `config`, resolves its
    implementation and, optionally, verifies it.

    Each step waits for the confirmed result of the previous one; there is no locking
    between concurrent runs targeting the same proxy.
    """

    def __init__(
        self,
        config: DeploymentConfig,
        network: NetworkProvider,
        resolve_artifact: ArtifactResolver,
        verification_driver: Optional[VerificationDriver] = None,
    ):
        self.config = config
        self.network = network
        self.resolve_artifact = resolve_artifact
        self.verification_driver = verification_driver
        self.proxy: Optional[ProxyHandle] = None

    def _get_artifact(self, contract_name: str) -> ContractArtifact:
        try:
            return self.resolve_artifact(contract_name)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def _get_proxy_deployer(self) -> ProxyDeployer:
        return ProxyDeployer(
            network=self.network,
            proxy_artifact=self._get_artifact(PROXY_NAME),
            proxy_admin_artifact=self._get_artifact(PROXY_ADMIN_NAME),
            initializer=self.config.initializer,
            initial_owner=self.config.initial_owner,
            autosign=self.config.autosign,
        )

    def run(self) -> RunResult:
        config = self.config
        config.check_chain_id(self.network.chain_id, is_local=self.network.is_local)
        self._print_run_info()

        artifact = self._get_artifact(config.contract_name)
        proxy_deployer = self._get_proxy_deployer()

        previous_implementation = None
        if isinstance(config.target, NewProxy) and config.initializer_params:
            validate_initializer_parameters(
                artifact, config.initializer, config.initializer_params
            )
        elif isinstance(config.target, UpgradeExisting):
            print("Upgrading...")
            current_proxy = ProxyHandle(
                address=config.target.proxy_address,
                chain_id=self.network.chain_id,
                network=self.network,
            )
            previous_implementation = get_implementation_address(current_proxy)
            print(f"Current implementation address: {previous_implementation}")

        self.proxy = proxy_deployer.execute(artifact, config.target)

        # the deploy/upgrade transactions are confirmed at this point
        implementation = get_implementation_address(self.proxy)
        result = RunResult(
            proxy=self.proxy,
            implementation=implementation,
            previous_implementation=previous_implementation,
        )
        report_deployment(result)

        if config.verification.enabled and self.verification_driver:
            request = VerificationRequest.for_implementation(implementation)
            outcome = self.verification_driver.verify(request)
            result = result._replace(verification=outcome)

        return result

    def execute(self) -> int:
        """Runs the orchestrator and returns the process exit code."""
        try:
            result = self.run()
        except ResolutionFailed as e:
            print(f"\n(!) ResolutionFailed: {e}")
            if self.proxy is not None:
                print(f"(!) Proxy at {self.proxy.address} is on-chain but unresolved.")
            return EXIT_FAILURE
        except DeploymentError as e:
            print(f"\n(!) {type(e).__name__}: {e}")
            if e.__cause__ is not None:
                print(f"\tcaused by: {e.__cause__!r}")
            return EXIT_FAILURE
        except Exception:
            print("\n(!) Unexpected error:")
            traceback.print_exc()
            return EXIT_FAILURE

        report_outcome(result)
        return result.exit_code

    def _print_run_info(self):
        config = self.config
        target = "upgrade" if config.is_upgrade else "new proxy"
        print(
            f"Deployment: {config.name}",
            f"Contract: {config.contract_name}",
            f"Target: {target}",
            f"Deployer: {self.network.deployer_address}",
            f"Chain ID: {self.network.chain_id}",
            f"Verify: {config.verification.enabled}",
            sep="\n",
        )


def report_deployment(result: RunResult) -> None:
    if result.previous_implementation is None:
        print(f"Proxy deployed to {result.proxy.address}")
        print(f"Implementation deployed to {result.implementation.address}")
        return

    print("Upgraded")
    print(f"Instance address: {result.proxy.address}")
    print(f"Implementation address: {result.implementation.address}")


def report_outcome(result: RunResult) -> None:
    outcome = result.verification
    if outcome is None:
        print("(i) Verification skipped")
    elif outcome.ok:
        print("(i) Implementation verified on block explorer")
    else:
        print(f"(!) Implementation not verified: {outcome.reason}")
    print(f"(i) Done. Proxy {result.proxy.address} -> {result.implementation.address}")
