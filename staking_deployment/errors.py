class DeploymentError(Exception):
    """Base class for all errors that abort a deployment run."""


class ConfigError(DeploymentError, ValueError):
    """Raised when the network configuration is missing or malformed."""


class SubmissionError(DeploymentError):
    """Raised when a transaction was never included in a block."""


class RevertError(DeploymentError):
    """Raised when a transaction was included but failed at the application level."""


class DecodeError(RevertError):
    """Raised when an expected event is missing from a receipt or cannot be decoded."""


class VerificationError(DeploymentError):
    """Raised when on-chain state does not match the intended configuration."""
