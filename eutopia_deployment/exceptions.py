"""Exception classes raised while deploying, upgrading and verifying proxies."""


class DeploymentError(Exception):
    """Base exception for proxy deployment errors."""


class ConfigurationError(DeploymentError, ValueError):
    """Raised when the deployment parameters are malformed or unresolvable."""


class DeploymentCancelled(DeploymentError):
    """Raised when the operator aborts before a transaction is submitted."""


class DeploymentFailed(DeploymentError):
    """Raised when a deployment or upgrade transaction is rejected, reverted or times out."""


class ResolutionFailed(DeploymentError, ValueError):
    """Raised when the implementation behind a proxy cannot be determined."""


class VerificationFailed(DeploymentError):
    """Raised by verification services; never escapes the verification driver."""
