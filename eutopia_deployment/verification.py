from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import requests
from eth_utils import to_hex

from eutopia_deployment.exceptions import VerificationFailed
from eutopia_deployment.models import (
    Failed,
    VerificationOutcome,
    VerificationRequest,
    Verified,
)

REQUEST_TIMEOUT = 30  # seconds


class VerificationService(ABC):
    """A source verification step performed against a block explorer."""

    name = "verification"

    @abstractmethod
    def verify(self, request: VerificationRequest) -> None:
        """Raises on failure."""
        raise NotImplementedError


class EtherscanProxyLinker(VerificationService):
    """
    Links a proxy to its implementation on an Etherscan-compatible explorer
    so the explorer shows the implementation ABI for the proxy address.
    """

    name = "proxy link"

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.session = session or requests.Session()

    def verify(self, request: VerificationRequest) -> None:
        if not self.api_url:
            raise VerificationFailed("No Etherscan-compatible API url configured for this network")
        if not request.proxy_address:
            raise VerificationFailed(f"No proxy address to link to {request.address}")

        params = {
            "module": "contract",
            "action": "verifyproxycontract",
            "apikey": self.api_key,
        }
        data = {
            "address": request.proxy_address,
            "expectedimplementation": request.address,
        }
        response = self.session.post(self.api_url, params=params, data=data, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()

        result = response.json()
        if str(result.get("status")) != "1":
            reason = result.get("result") or result.get("message") or "unknown error"
            raise VerificationFailed(f"Explorer rejected proxy verification: {reason}")
        print(f"(i) Proxy link submitted (guid {result.get('result')})")


class VerificationDriver:
    """
    Runs verification services in order for a single implementation.

    Every failure is captured and returned as a `Failed` outcome: verification
    runs after the deployment is final on-chain and must never abort the run.
    """

    def __init__(self, services: Sequence[VerificationService]):
        self.services: List[VerificationService] = list(services)

    def verify(self, request: VerificationRequest) -> VerificationOutcome:
        print(f"(i) Verifying implementation at {request.address}...")
        service_name = "verification"
        try:
            if request.constructor_args:
                print(f"\tconstructor arguments: {to_hex(request.encoded_arguments)}")
            for service in self.services:
                service_name = service.name
                service.verify(request)
        except Exception as e:
            reason = f"{service_name} failed: {str(e) or type(e).__name__}"
            print(f"(!) Error verifying {request.address}: {reason}")
            return Failed(address=request.address, reason=reason)

        print(f"(i) Implementation {request.address} verified")
        return Verified(address=request.address)
