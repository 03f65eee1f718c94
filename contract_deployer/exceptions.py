class DeploymentError(Exception):
    """Base class for every failure surfaced by a deployment run."""


class DeploymentConfigError(DeploymentError, ValueError):
    """Raised when a deployment parameters file is malformed or inconsistent."""


class ArtifactNotFound(DeploymentError, LookupError):
    """Raised when a contract name does not resolve to a deployable artifact."""


class ArgumentMismatch(DeploymentError, ValueError):
    """Raised when constructor arguments do not match the constructor ABI."""


class SubmissionFailed(DeploymentError):
    """Raised when the network rejects a deployment transaction."""


class ConfirmationTimeout(DeploymentError, TimeoutError):
    """Raised when a submitted deployment is not confirmed in time."""


class DeploymentAborted(DeploymentError):
    """Raised when the operator declines a confirmation prompt."""
