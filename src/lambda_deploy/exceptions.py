"""
lambda_deploy.exceptions: Deployment failure taxonomy and backend error tags.

Two families live here:

  DeploymentError   Raised by the components and reported by the CLI. Every
                    subclass carries a stable ``classification`` string and a
                    ``rerun_safe`` flag telling the operator whether re-running
                    the deploy is the right recovery.

  BackendError      Raised by the Lambda/STS adapter. Tags a remote-call failure
                    as not-found, conflict, timeout, credentials or other, so no
                    caller ever pattern-matches AWS error messages. Components
                    translate these into DeploymentError at the point of failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

# ---------------------------------------------------------------------------
# Backend error tags
# ---------------------------------------------------------------------------


class BackendError(RuntimeError):
    """Base class for classified Lambda/STS call failures.

    Attributes:
        operation: Backend operation that failed (e.g. ``PublishVersion``).
        code:      AWS error code, or the botocore exception name.
        detail:    Human-readable detail from the service or the transport.
    """

    def __init__(self, operation: str, *, code: str = "", detail: str = "") -> None:
        self.operation = operation
        self.code = code
        self.detail = detail
        text = f"{operation} failed"
        if code:
            text += f" ({code})"
        if detail:
            text += f": {detail}"
        super().__init__(text)


class BackendNotFound(BackendError):
    """The addressed function or alias does not exist."""


class BackendConflict(BackendError):
    """The function is locked by another operation.

    ``update_in_progress`` is set when the conflict is Lambda's per-function
    update guard rather than, say, an alias that already exists.
    """

    def __init__(
        self,
        operation: str,
        *,
        code: str = "",
        detail: str = "",
        update_in_progress: bool = False,
    ) -> None:
        self.update_in_progress = update_in_progress
        super().__init__(operation, code=code, detail=detail)


class BackendTimeout(BackendError):
    """The call did not complete within its client timeout. Outcome unknown."""


class BackendCredentialsError(BackendError):
    """The caller's credentials are missing, expired or rejected."""


class BackendRequestError(BackendError):
    """Any other service or transport error."""


# ---------------------------------------------------------------------------
# Deployment failure taxonomy
# ---------------------------------------------------------------------------


class DeploymentError(RuntimeError):
    """Base class for classified deployment failures."""

    classification = "DeploymentError"
    rerun_safe = True


class InvalidArgumentsError(DeploymentError):
    classification = "InvalidArguments"
    rerun_safe = False


class ConfigurationError(DeploymentError):
    classification = "InvalidConfiguration"
    rerun_safe = False


class ArtifactNotFoundError(DeploymentError):
    """No deployable bundle exists at any candidate path.

    Attributes:
        searched: Every path probed, in probe order.
    """

    classification = "ArtifactNotFound"
    rerun_safe = False

    def __init__(self, searched: Sequence[Path]) -> None:
        self.searched = tuple(searched)
        listing = ", ".join(str(path) for path in self.searched) or "<no candidates>"
        super().__init__(f"No deployment artifact found; searched: {listing}")


class InvalidCredentialsError(DeploymentError):
    classification = "InvalidCredentials"
    rerun_safe = False


class UploadTimeoutError(DeploymentError):
    classification = "UploadTimeout"


class UploadFailedError(DeploymentError):
    classification = "UploadFailed"


class BackendUpdateFailedError(DeploymentError):
    classification = "BackendUpdateFailed"


class ReadinessTimeoutError(DeploymentError):
    classification = "ReadinessTimeout"


class PublishFailedError(DeploymentError):
    classification = "PublishFailed"


class PublishResponseMalformedError(DeploymentError):
    classification = "PublishResponseMalformed"


class AliasLookupFailedError(DeploymentError):
    classification = "AliasLookupFailed"


class AliasOperationTimeoutError(DeploymentError):
    classification = "AliasOperationTimeout"


class AliasUpdateFailedError(DeploymentError):
    classification = "AliasUpdateFailed"


class AliasVerificationFailedError(DeploymentError):
    classification = "AliasVerificationFailed"
