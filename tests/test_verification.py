import pytest
import requests

from eutopia_deployment.exceptions import VerificationFailed
from eutopia_deployment.models import Failed, VerificationRequest, Verified
from eutopia_deployment.verification import (
    EtherscanProxyLinker,
    VerificationDriver,
    VerificationService,
)
from tests.conftest import OWNER, ROUTER

IMPLEMENTATION = ROUTER
PROXY = OWNER
API_URL = "https://api.example.org/api"


class RecordingService(VerificationService):
    def __init__(self, name, error=None):
        self.name = name
        self.error = error
        self.requests = list()

    def verify(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.posts = list()

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        return self.response


@pytest.fixture
def verification_request():
    return VerificationRequest(address=IMPLEMENTATION, proxy_address=PROXY)


def test_verified(verification_request, capsys):
    explorer = RecordingService("explorer")
    linker = RecordingService("proxy link")
    driver = VerificationDriver(services=[explorer, linker])

    outcome = driver.verify(verification_request)

    assert outcome == Verified(address=IMPLEMENTATION)
    assert outcome.ok
    assert explorer.requests == [verification_request]
    assert linker.requests == [verification_request]
    assert f"(i) Implementation {IMPLEMENTATION} verified" in capsys.readouterr().out


def test_already_verified_is_a_failure_not_an_error(verification_request, capsys):
    driver = VerificationDriver(
        services=[RecordingService("explorer", error=ValueError("Contract source code already verified"))]
    )

    outcome = driver.verify(verification_request)

    assert isinstance(outcome, Failed)
    assert not outcome.ok
    assert outcome.address == IMPLEMENTATION
    assert outcome.reason == "explorer failed: Contract source code already verified"
    assert "(!) Error verifying" in capsys.readouterr().out


def test_failure_stops_remaining_services(verification_request):
    explorer = RecordingService("explorer", error=requests.ConnectionError("Max rate limit reached"))
    linker = RecordingService("proxy link")
    driver = VerificationDriver(services=[explorer, linker])

    outcome = driver.verify(verification_request)

    assert outcome.reason == "explorer failed: Max rate limit reached"
    assert linker.requests == []


def test_failure_without_message(verification_request):
    driver = VerificationDriver(services=[RecordingService("explorer", error=TimeoutError())])
    outcome = driver.verify(verification_request)
    assert outcome.reason == "explorer failed: TimeoutError"


def test_invalid_constructor_arguments_are_captured():
    request = VerificationRequest(
        address=IMPLEMENTATION, constructor_types=("address",), constructor_args=(1, 2)
    )
    explorer = RecordingService("explorer")
    outcome = VerificationDriver(services=[explorer]).verify(request)

    assert not outcome.ok
    assert explorer.requests == []


def test_constructor_arguments_are_printed(capsys):
    request = VerificationRequest(
        address=IMPLEMENTATION, constructor_types=("uint256",), constructor_args=(1,)
    )
    outcome = VerificationDriver(services=[]).verify(request)

    assert outcome.ok
    assert "0x" + "00" * 31 + "01" in capsys.readouterr().out


def test_proxy_linker(verification_request):
    session = FakeSession(FakeResponse({"status": "1", "message": "OK", "result": "guid-123"}))
    linker = EtherscanProxyLinker(api_url=API_URL, api_key="secret", session=session)

    linker.verify(verification_request)

    ((url, kwargs),) = session.posts
    assert url == API_URL
    assert kwargs["params"] == {
        "module": "contract",
        "action": "verifyproxycontract",
        "apikey": "secret",
    }
    assert kwargs["data"] == {"address": PROXY, "expectedimplementation": IMPLEMENTATION}
    assert kwargs["timeout"] > 0


def test_proxy_linker_rejected(verification_request):
    session = FakeSession(FakeResponse({"status": "0", "message": "NOTOK", "result": "Invalid API Key"}))
    linker = EtherscanProxyLinker(api_url=API_URL, api_key="wrong", session=session)

    with pytest.raises(VerificationFailed, match="Invalid API Key"):
        linker.verify(verification_request)


def test_proxy_linker_http_error(verification_request):
    session = FakeSession(FakeResponse({}, status_code=502))
    linker = EtherscanProxyLinker(api_url=API_URL, api_key="secret", session=session)

    with pytest.raises(requests.HTTPError):
        linker.verify(verification_request)

    # captured by the driver
    outcome = VerificationDriver(services=[linker]).verify(verification_request)
    assert outcome.reason == "proxy link failed: 502 Server Error"


def test_proxy_linker_without_proxy():
    session = FakeSession(FakeResponse({"status": "1"}))
    linker = EtherscanProxyLinker(api_url=API_URL, api_key="secret", session=session)

    with pytest.raises(VerificationFailed, match="No proxy address"):
        linker.verify(VerificationRequest(address=IMPLEMENTATION))
    assert session.posts == []


def test_proxy_linker_without_api_url(verification_request):
    session = FakeSession(FakeResponse({"status": "1"}))
    linker = EtherscanProxyLinker(api_url=None, api_key="secret", session=session)

    with pytest.raises(VerificationFailed, match="No Etherscan-compatible API url"):
        linker.verify(verification_request)
    assert session.posts == []

    # networks without a known explorer API still finish the run
    outcome = VerificationDriver(services=[linker]).verify(verification_request)
    assert not outcome.ok
    assert outcome.reason.startswith("proxy link failed: No Etherscan-compatible API url")
