"""
lambda_deploy.backend: AWS Lambda / STS adapter.

The only module that talks to boto3. Every call goes through _classified(),
which turns ClientError / BotoCoreError into the tagged BackendError subclasses
from lambda_deploy.exceptions:

  ResourceNotFoundException           -> BackendNotFound
  ResourceConflictException           -> BackendConflict (update_in_progress when
                                         Lambda's per-function update guard fired)
  expired / invalid token, signature  -> BackendCredentialsError
  botocore read / connect timeout     -> BackendTimeout
  anything else                       -> BackendRequestError

botocore's own retry loop is disabled; retry policy belongs to the driver.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
    ReadTimeoutError,
)

from lambda_deploy.config import DeployConfig
from lambda_deploy.exceptions import (
    BackendConflict,
    BackendCredentialsError,
    BackendError,
    BackendNotFound,
    BackendRequestError,
    BackendTimeout,
)
from lambda_deploy.models import AliasState, CallerIdentity, CodeUpload, UpdateState, UpdateStatus

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"ResourceNotFoundException"})
_CONFLICT_CODES = frozenset({"ResourceConflictException"})
_CREDENTIAL_CODES = frozenset(
    {
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidClientTokenId",
        "InvalidSignatureException",
        "SignatureDoesNotMatch",
        "UnrecognizedClientException",
    }
)
_UPDATE_IN_PROGRESS_MARKER = "update is in progress"


class DeploymentBackend(Protocol):
    """Remote operations the deploy workflow needs, bound to one region."""

    def get_caller_identity(self) -> CallerIdentity: ...

    def update_code(self, function_name: str, zip_bytes: bytes) -> CodeUpload: ...

    def get_update_state(self, function_name: str) -> UpdateState: ...

    def publish_version(self, function_name: str, *, description: str = "") -> Any: ...

    def get_alias(self, function_name: str, alias_name: str) -> AliasState: ...

    def create_alias(
        self, function_name: str, alias_name: str, function_version: str
    ) -> AliasState: ...

    def update_alias(
        self, function_name: str, alias_name: str, function_version: str
    ) -> AliasState: ...


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def classify_client_error(exc: ClientError, *, operation: str) -> BackendError:
    """Map a botocore ClientError to a tagged BackendError.

    The update-in-progress check is the one place message text is inspected:
    Lambda uses ResourceConflictException for both "update in progress" and
    "alias already exists" and only the message tells them apart.
    """
    error = exc.response.get("Error", {})
    code = str(error.get("Code", ""))
    detail = str(error.get("Message", ""))

    if code in _NOT_FOUND_CODES:
        return BackendNotFound(operation, code=code, detail=detail)
    if code in _CONFLICT_CODES:
        return BackendConflict(
            operation,
            code=code,
            detail=detail,
            update_in_progress=_UPDATE_IN_PROGRESS_MARKER in detail.lower(),
        )
    if code in _CREDENTIAL_CODES:
        return BackendCredentialsError(operation, code=code, detail=detail)
    return BackendRequestError(operation, code=code, detail=detail)


def classify_botocore_error(exc: BotoCoreError, *, operation: str) -> BackendError:
    """Map a transport-level BotoCoreError to a tagged BackendError."""
    code = type(exc).__name__
    if isinstance(exc, (ReadTimeoutError, ConnectTimeoutError)):
        return BackendTimeout(operation, code=code, detail=str(exc))
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError, ProfileNotFound)):
        return BackendCredentialsError(operation, code=code, detail=str(exc))
    return BackendRequestError(operation, code=code, detail=str(exc))


@contextmanager
def _classified(operation: str) -> Iterator[None]:
    try:
        yield
    except ClientError as exc:
        raise classify_client_error(exc, operation=operation) from exc
    except BotoCoreError as exc:
        raise classify_botocore_error(exc, operation=operation) from exc


def _loggable(response: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in response.items() if key != "ResponseMetadata"}


def _client_config(*, read_timeout: float, connect_timeout: float) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"total_max_attempts": 1},
    )


# ---------------------------------------------------------------------------
# LambdaBackend
# ---------------------------------------------------------------------------


class LambdaBackend:
    """
    boto3-backed DeploymentBackend for a single function region.

    Three Lambda clients share the region but carry different read timeouts:
      read_client    short: alias lookups
      poll_client    medium: status polls, publish, alias mutations
      upload_client  long: UpdateFunctionCode
    """

    def __init__(
        self,
        *,
        read_client: Any,
        poll_client: Any = None,
        upload_client: Any = None,
        sts_client: Any,
    ) -> None:
        self._read: Any = read_client
        self._poll: Any = poll_client or read_client
        self._upload: Any = upload_client or self._poll
        self._sts: Any = sts_client

    @classmethod
    def for_region(
        cls,
        region: str,
        config: DeployConfig,
        *,
        session: Any = None,
    ) -> LambdaBackend:
        """Build the region-bound clients.

        Session and client construction errors (unknown profile, malformed region)
        are raised as tagged BackendErrors like any remote-call failure.
        """
        with _classified("CreateClient"):
            return cls._build(region, config, session or boto3.session.Session())

    @classmethod
    def _build(cls, region: str, config: DeployConfig, session: Any) -> LambdaBackend:
        connect = config.connect_timeout_seconds

        def _lambda(read_timeout: float) -> Any:
            return session.client(
                "lambda",
                region_name=region,
                config=_client_config(read_timeout=read_timeout, connect_timeout=connect),
            )

        return cls(
            read_client=_lambda(config.read_timeout_seconds),
            poll_client=_lambda(config.poll_timeout_seconds),
            upload_client=_lambda(config.upload_timeout_seconds),
            sts_client=session.client(
                "sts",
                region_name=region,
                config=_client_config(
                    read_timeout=config.read_timeout_seconds, connect_timeout=connect
                ),
            ),
        )

    def get_caller_identity(self) -> CallerIdentity:
        with _classified("GetCallerIdentity"):
            response = self._sts.get_caller_identity()
        logger.debug("GetCallerIdentity response: %s", _loggable(response))
        return CallerIdentity(
            account=str(response.get("Account", "unknown")),
            arn=str(response.get("Arn", "unknown")),
            user_id=str(response.get("UserId", "")),
        )

    def update_code(self, function_name: str, zip_bytes: bytes) -> CodeUpload:
        with _classified("UpdateFunctionCode"):
            response = self._upload.update_function_code(
                FunctionName=function_name,
                ZipFile=zip_bytes,
            )
        logger.debug("UpdateFunctionCode response: %s", _loggable(response))
        size = response.get("CodeSize")
        return CodeUpload(
            code_sha256=response.get("CodeSha256"),
            code_size=int(size) if size is not None else None,
        )

    def get_update_state(self, function_name: str) -> UpdateState:
        with _classified("GetFunctionConfiguration"):
            response = self._poll.get_function_configuration(FunctionName=function_name)
        logger.debug("GetFunctionConfiguration response: %s", _loggable(response))

        # Functions that never went through an asynchronous update report no status.
        raw_status = response.get("LastUpdateStatus") or UpdateStatus.SUCCESSFUL.value
        try:
            status = UpdateStatus(raw_status)
        except ValueError as exc:
            raise BackendRequestError(
                "GetFunctionConfiguration",
                code="UnknownLastUpdateStatus",
                detail=f"unrecognised LastUpdateStatus {raw_status!r}",
            ) from exc
        return UpdateState(
            status=status,
            reason=response.get("LastUpdateStatusReason"),
            reason_code=response.get("LastUpdateStatusReasonCode"),
        )

    def publish_version(self, function_name: str, *, description: str = "") -> Any:
        """Publish $LATEST and return the raw Version field, unvalidated."""
        with _classified("PublishVersion"):
            response = self._poll.publish_version(
                FunctionName=function_name,
                Description=description,
            )
        logger.debug("PublishVersion response: %s", _loggable(response))
        return response.get("Version")

    def get_alias(self, function_name: str, alias_name: str) -> AliasState:
        """Return the alias; raises BackendNotFound when it does not exist."""
        with _classified("GetAlias"):
            response = self._read.get_alias(FunctionName=function_name, Name=alias_name)
        logger.debug("GetAlias response: %s", _loggable(response))
        return _alias_state(alias_name, response)

    def create_alias(
        self, function_name: str, alias_name: str, function_version: str
    ) -> AliasState:
        with _classified("CreateAlias"):
            response = self._poll.create_alias(
                FunctionName=function_name,
                Name=alias_name,
                FunctionVersion=function_version,
            )
        logger.debug("CreateAlias response: %s", _loggable(response))
        return _alias_state(alias_name, response)

    def update_alias(
        self, function_name: str, alias_name: str, function_version: str
    ) -> AliasState:
        with _classified("UpdateAlias"):
            response = self._poll.update_alias(
                FunctionName=function_name,
                Name=alias_name,
                FunctionVersion=function_version,
            )
        logger.debug("UpdateAlias response: %s", _loggable(response))
        return _alias_state(alias_name, response)


def _alias_state(alias_name: str, response: dict[str, Any]) -> AliasState:
    version = response.get("FunctionVersion")
    return AliasState(
        alias_name=str(response.get("Name", alias_name)),
        function_version=str(version) if version is not None else None,
    )
