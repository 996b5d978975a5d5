import os
from pathlib import Path
from typing import List, Optional

from eth_typing import ChecksumAddress

from eutopia_deployment.constants import ETHERSCAN_API_KEY_ENVVAR, EXPLORER_API_URLS
from eutopia_deployment.exceptions import DeploymentError
from eutopia_deployment.models import ProxyHandle, VerificationRequest
from eutopia_deployment.network import (
    ApeNetwork,
    ExplorerService,
    check_plugins,
    get_contract_artifact,
)
from eutopia_deployment.orchestrator import EXIT_FAILURE, EXIT_SUCCESS, Orchestrator
from eutopia_deployment.params import DeploymentConfig, VerificationConfig
from eutopia_deployment.resolver import get_implementation_address
from eutopia_deployment.verification import (
    EtherscanProxyLinker,
    VerificationDriver,
    VerificationService,
)


def get_verification_driver(
    contract_name: str, verification: VerificationConfig
) -> Optional[VerificationDriver]:
    """Returns None when verification is disabled."""
    if not verification.enabled:
        return None
    services: List[VerificationService] = [ExplorerService(contract_name=contract_name)]
    if verification.link_proxy:
        services.append(
            EtherscanProxyLinker(api_url=verification.api_url, api_key=verification.api_key)
        )
    return VerificationDriver(services=services)


def run_deployment(
    params_filepath: Path,
    proxy_address: Optional[ChecksumAddress] = None,
    verify: Optional[bool] = None,
    autosign: bool = False,
    confirmations: Optional[int] = None,
) -> int:
    """Deploys or upgrades the proxy described in `params_filepath`; returns the exit code."""
    try:
        network = ApeNetwork(autosign=autosign, required_confirmations=confirmations)
        config = DeploymentConfig.from_yaml(
            params_filepath,
            environ=os.environ,
            deployer_address=network.deployer_address,
            proxy_address=proxy_address,
            autosign=autosign,
        )
        if verify is not None:
            config = config.with_verification(verify)

        check_plugins(verify=config.verification.enabled)
        driver = get_verification_driver(config.contract_name, config.verification)
    except (DeploymentError, ImportError, ValueError) as e:
        print(f"(!) {type(e).__name__}: {e}")
        return EXIT_FAILURE

    orchestrator = Orchestrator(
        config=config,
        network=network,
        resolve_artifact=get_contract_artifact,
        verification_driver=driver,
    )
    return orchestrator.execute()


def run_verification(
    proxy_address: ChecksumAddress,
    contract_name: str,
    link_proxy: bool = False,
    api_url: Optional[str] = None,
) -> int:
    """
    Verifies the implementation currently behind an existing proxy.
    Nothing is deployed; a failed verification is reported but is not an error.
    """
    try:
        check_plugins(verify=True)
        network = ApeNetwork(read_only=True)
        proxy = ProxyHandle(address=proxy_address, chain_id=network.chain_id, network=network)
        implementation = get_implementation_address(proxy)
        verification = VerificationConfig(
            enabled=True,
            api_url=api_url or EXPLORER_API_URLS.get(network.chain_id),
            api_key=os.environ.get(ETHERSCAN_API_KEY_ENVVAR),
            link_proxy=link_proxy,
        )
        driver = get_verification_driver(contract_name, verification)
    except (DeploymentError, ImportError, ValueError) as e:
        print(f"(!) {type(e).__name__}: {e}")
        return EXIT_FAILURE

    print(f"Proxy contract detected; verifying implementation contract at {implementation}")
    driver.verify(VerificationRequest.for_implementation(implementation))
    return EXIT_SUCCESS
