"""
lambda_deploy.alias: Point the target alias at a published version.

Decision table for the first GetAlias:

  not found      -> CreateAlias (falls back to UpdateAlias if another deploy
                    created it in between)
  found          -> UpdateAlias (idempotent for the same version)
  timeout        -> AliasOperationTimeoutError
  anything else  -> AliasLookupFailedError; never treated as "absent"

Optionally re-reads the alias afterwards and fails with
AliasVerificationFailedError if it does not point at the published version.
"""

from __future__ import annotations

import logging

from lambda_deploy.backend import DeploymentBackend
from lambda_deploy.config import DeployConfig
from lambda_deploy.exceptions import (
    AliasLookupFailedError,
    AliasOperationTimeoutError,
    AliasUpdateFailedError,
    AliasVerificationFailedError,
    BackendConflict,
    BackendCredentialsError,
    BackendError,
    BackendNotFound,
    BackendTimeout,
    InvalidCredentialsError,
)
from lambda_deploy.models import AliasAction, AliasOutcome, AliasState, DeploymentRequest

logger = logging.getLogger(__name__)


class AliasResolver:
    def __init__(self, backend: DeploymentBackend, config: DeployConfig) -> None:
        self._backend = backend
        self._config = config

    def resolve(self, request: DeploymentRequest, version: str) -> AliasOutcome:
        """Create or repoint request.alias_name so that it targets version."""
        alias_name = request.alias_name
        logger.info("Checking alias '%s'...", alias_name)
        current = self.lookup(request)

        if current.exists:
            logger.info("Alias exists; updating to version %s...", version)
            self._update(request, version)
            outcome = AliasOutcome(
                alias_name=alias_name,
                function_version=version,
                action=AliasAction.UPDATED,
                previous_version=current.function_version,
            )
        else:
            logger.info("Alias not found; creating '%s' -> %s...", alias_name, version)
            outcome = self._create_or_update(request, version)

        if self._config.verify_alias:
            self.verify(request, version)
        logger.info(
            "%s alias '%s' -> version '%s'", outcome.action.capitalize(), alias_name, version
        )
        return outcome

    def lookup(self, request: DeploymentRequest) -> AliasState:
        try:
            return self._backend.get_alias(request.function_name, request.alias_name)
        except BackendNotFound:
            return AliasState(alias_name=request.alias_name)
        except BackendTimeout as exc:
            raise AliasOperationTimeoutError(
                f"Get-alias for '{request.alias_name}' timed out: {exc}"
            ) from exc
        except BackendCredentialsError as exc:
            raise InvalidCredentialsError(f"Credentials rejected during get-alias: {exc}") from exc
        except BackendError as exc:
            raise AliasLookupFailedError(
                f"Get-alias failed with a non-not-found error: {exc}"
            ) from exc

    def verify(self, request: DeploymentRequest, version: str) -> None:
        observed = self.lookup(request)
        if observed.function_version != version:
            raise AliasVerificationFailedError(
                f"Alias '{request.alias_name}' points at "
                f"{observed.function_version or 'nothing'}, expected version {version}"
            )
        logger.debug("Verified alias '%s' -> %s", request.alias_name, version)

    def _create_or_update(self, request: DeploymentRequest, version: str) -> AliasOutcome:
        try:
            self._mutate("create", request, version)
        except AliasUpdateFailedError as exc:
            cause = exc.__cause__
            if not (isinstance(cause, BackendConflict) and not cause.update_in_progress):
                raise
            # Another deploy created the alias between our lookup and create.
            logger.warning("Alias '%s' appeared concurrently; updating instead", request.alias_name)
            self._update(request, version)
            return AliasOutcome(
                alias_name=request.alias_name,
                function_version=version,
                action=AliasAction.UPDATED,
            )
        return AliasOutcome(
            alias_name=request.alias_name,
            function_version=version,
            action=AliasAction.CREATED,
        )

    def _update(self, request: DeploymentRequest, version: str) -> None:
        self._mutate("update", request, version)

    def _mutate(self, verb: str, request: DeploymentRequest, version: str) -> None:
        call = self._backend.create_alias if verb == "create" else self._backend.update_alias
        try:
            call(request.function_name, request.alias_name, version)
        except BackendTimeout as exc:
            raise AliasOperationTimeoutError(
                f"{verb.capitalize()}-alias for '{request.alias_name}' timed out; "
                f"outcome unknown: {exc}"
            ) from exc
        except BackendCredentialsError as exc:
            raise InvalidCredentialsError(
                f"Credentials rejected during {verb}-alias: {exc}"
            ) from exc
        except BackendError as exc:
            raise AliasUpdateFailedError(f"{verb.capitalize()}-alias failed: {exc}") from exc
