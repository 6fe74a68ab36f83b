"""
lambda_deploy.driver: Upload, readiness wait and version publication.

State machine:

    Idle -> Uploading -> AwaitingReadiness -> Publishing -> Published
    Uploading, AwaitingReadiness, Publishing -> Failed on any classified error

Two retry loops, both built on lambda_deploy.retry:
  readiness  Precondition wait. Polls LastUpdateStatus until Successful/Failed,
             bounded by readiness_attempts x readiness_delay_seconds.
  publish    Recovery from Lambda's update-in-progress conflict, which can
             fire even after readiness reported Successful. Each conflict
             re-enters the full readiness wait before the next publish.
Upload is never retried here; re-running the deploy is the retry path.
"""

from __future__ import annotations

import base64
import hashlib
import itertools
import logging
import time
from collections.abc import Callable
from pathlib import Path

from lambda_deploy.backend import DeploymentBackend
from lambda_deploy.config import DeployConfig
from lambda_deploy.exceptions import (
    ArtifactNotFoundError,
    BackendConflict,
    BackendCredentialsError,
    BackendError,
    BackendNotFound,
    BackendTimeout,
    BackendUpdateFailedError,
    DeploymentError,
    InvalidCredentialsError,
    PublishFailedError,
    PublishResponseMalformedError,
    ReadinessTimeoutError,
    UploadFailedError,
    UploadTimeoutError,
)
from lambda_deploy.models import (
    CodeUpload,
    DeploymentRequest,
    DriverState,
    UpdateState,
    UpdateStatus,
    is_version_token,
)
from lambda_deploy.retry import RetryExhausted, retry

logger = logging.getLogger(__name__)


class FunctionNotReady(RuntimeError):
    """A status poll saw InProgress. Retryable inside the readiness loop only."""

    def __init__(self, state: UpdateState) -> None:
        self.state = state
        super().__init__(f"LastUpdateStatus={state.status}")


def _is_retryable_poll_error(exc: Exception) -> bool:
    if isinstance(exc, FunctionNotReady):
        return True
    # A missing function or rejected credentials will not fix themselves.
    if isinstance(exc, (BackendNotFound, BackendCredentialsError)):
        return False
    return isinstance(exc, BackendError)


def _is_update_in_progress(exc: Exception) -> bool:
    return isinstance(exc, BackendConflict) and exc.update_in_progress


def _artifact_path(request: DeploymentRequest) -> Path:
    if request.artifact_path is None:
        raise ValueError("artifact_path must be resolved by preflight before deploying")
    return request.artifact_path


def code_sha256(payload: bytes) -> str:
    """Base64 SHA-256 digest, the encoding Lambda uses for CodeSha256."""
    return base64.b64encode(hashlib.sha256(payload).digest()).decode("ascii")


def format_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KiB", "MiB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"


class DeploymentDriver:
    """Drives one artifact from local bytes to a published, validated version."""

    def __init__(
        self,
        backend: DeploymentBackend,
        config: DeployConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._backend = backend
        self._config = config
        self._sleep = sleep
        self.state = DriverState.IDLE

    def _transition(self, state: DriverState) -> None:
        logger.debug("Driver state %s -> %s", self.state, state)
        self.state = state

    def deploy(self, request: DeploymentRequest) -> str:
        """Upload, wait, publish. Returns the new version string."""
        _artifact_path(request)
        try:
            self._settle(request)
            self._transition(DriverState.UPLOADING)
            self.upload(request)
            self._transition(DriverState.AWAITING_READINESS)
            self.wait_for_readiness(request)
            self._transition(DriverState.PUBLISHING)
            version = self.publish(request)
        except DeploymentError:
            self._transition(DriverState.FAILED)
            raise
        self._transition(DriverState.PUBLISHED)
        return version

    # ------------------------------------------------------------------
    # Uploading
    # ------------------------------------------------------------------

    def _settle(self, request: DeploymentRequest) -> None:
        """Wait out an update left running by an interrupted earlier deploy.

        A Failed status here is tolerated: the upload replaces the failed code.
        """
        logger.info("Checking %s is idle before upload", request.function_name)
        self.wait_for_readiness(request, tolerate_failed=True, missing_error=UploadFailedError)

    def upload(self, request: DeploymentRequest) -> CodeUpload:
        path = _artifact_path(request)
        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise ArtifactNotFoundError([path]) from exc

        logger.info("Bundle size: %s", format_size(len(payload)))
        logger.info("Uploading function code to AWS Lambda...")
        try:
            upload = self._backend.update_code(request.function_name, payload)
        except BackendTimeout as exc:
            raise UploadTimeoutError(
                f"UpdateFunctionCode for {request.function_name} did not complete within "
                f"{self._config.upload_timeout_seconds:g}s; the update may still be applied"
            ) from exc
        except BackendCredentialsError as exc:
            raise InvalidCredentialsError(f"Credentials rejected during upload: {exc}") from exc
        except BackendError as exc:
            raise UploadFailedError(f"Update-function-code failed: {exc}") from exc

        local_digest = code_sha256(payload)
        if upload.code_sha256 and upload.code_sha256 != local_digest:
            logger.warning(
                "Returned CodeSha256 %s differs from local bundle digest %s",
                upload.code_sha256,
                local_digest,
            )
        else:
            logger.debug("CodeSha256 %s matches local bundle", local_digest)
        logger.info("Function code updated successfully")
        return upload

    # ------------------------------------------------------------------
    # AwaitingReadiness
    # ------------------------------------------------------------------

    def wait_for_readiness(
        self,
        request: DeploymentRequest,
        *,
        tolerate_failed: bool = False,
        missing_error: type[DeploymentError] = BackendUpdateFailedError,
    ) -> UpdateState:
        """Poll LastUpdateStatus until it is terminal or the attempt ceiling is hit."""
        function_name = request.function_name
        attempts = self._config.readiness_attempts
        delay = self._config.readiness_delay_seconds
        counter = itertools.count(1)

        def poll() -> UpdateState:
            attempt = next(counter)
            logger.info("Checking function status (attempt %d/%d)", attempt, attempts)
            state = self._backend.get_update_state(function_name)
            if state.status is UpdateStatus.IN_PROGRESS:
                raise FunctionNotReady(state)
            return state

        def on_retry(attempt: int, exc: Exception) -> None:
            if isinstance(exc, FunctionNotReady):
                logger.info("Status: %s - waiting %g seconds", exc.state.status, delay)
            else:
                logger.warning("Status check failed (%s); will retry", exc)

        try:
            state = retry(
                poll,
                max_attempts=attempts,
                delay=delay,
                is_retryable=_is_retryable_poll_error,
                sleep=self._sleep,
                on_retry=on_retry,
            )
        except RetryExhausted as exc:
            raise ReadinessTimeoutError(
                f"Timeout waiting for {function_name} readiness after {exc.attempts} "
                f"attempt(s) {delay:g}s apart; last: {exc.last_error}"
            ) from exc
        except BackendCredentialsError as exc:
            raise InvalidCredentialsError(
                f"Credentials rejected during status poll: {exc}"
            ) from exc
        except BackendNotFound as exc:
            raise missing_error(
                f"Function {function_name} not found in {request.region}: {exc}"
            ) from exc

        if state.status is UpdateStatus.FAILED:
            detail = state.reason or "no reason given"
            if state.reason_code:
                detail = f"{detail} ({state.reason_code})"
            if tolerate_failed:
                logger.warning("Previous update of %s had failed: %s", function_name, detail)
                return state
            raise BackendUpdateFailedError(f"Lambda reports LastUpdateStatus=Failed: {detail}")

        logger.info("Function is ready")
        return state

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, request: DeploymentRequest) -> str:
        function_name = request.function_name
        attempts = self._config.publish_attempts
        description = f"Deployed from branch {request.branch_name}"

        def attempt_publish() -> object:
            logger.info("Publishing version...")
            return self._backend.publish_version(function_name, description=description)

        def on_conflict(attempt: int, exc: Exception) -> None:
            logger.warning(
                "Publish attempt %d/%d blocked by an update in progress; waiting for readiness",
                attempt,
                attempts,
            )
            self._transition(DriverState.AWAITING_READINESS)
            self.wait_for_readiness(request)
            self._transition(DriverState.PUBLISHING)

        try:
            raw_version = retry(
                attempt_publish,
                max_attempts=attempts,
                delay=self._config.publish_retry_delay_seconds,
                is_retryable=_is_update_in_progress,
                sleep=self._sleep,
                on_retry=on_conflict,
            )
        except RetryExhausted as exc:
            raise PublishFailedError(
                f"Publish-version still blocked by an update in progress after "
                f"{exc.attempts} attempt(s)"
            ) from exc
        except BackendCredentialsError as exc:
            raise InvalidCredentialsError(f"Credentials rejected during publish: {exc}") from exc
        except BackendTimeout as exc:
            raise PublishFailedError(
                f"Publish-version timed out; a version may or may not have been created: {exc}"
            ) from exc
        except BackendError as exc:
            raise PublishFailedError(f"Publish-version failed: {exc}") from exc

        if not is_version_token(raw_version):
            raise PublishResponseMalformedError(
                f"Could not parse published version from {raw_version!r}"
            )
        logger.info("Published version %s", raw_version)
        return raw_version
