"""
lambda_deploy.workflow: One deploy invocation, top to bottom.

preflight -> driver -> alias resolver. Every step is safe to re-enter, so an
interrupted run is resumed by running the whole workflow again with the same
request.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from lambda_deploy.alias import AliasResolver
from lambda_deploy.backend import DeploymentBackend
from lambda_deploy.config import DeployConfig
from lambda_deploy.driver import DeploymentDriver
from lambda_deploy.models import DeploymentRequest, DeploymentResult
from lambda_deploy.preflight import run_preflight

logger = logging.getLogger(__name__)


def run_deployment(
    request: DeploymentRequest,
    backend: DeploymentBackend,
    config: DeployConfig,
    *,
    base_dir: Path | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> DeploymentResult:
    started = time.monotonic()
    logger.info(
        "Starting Lambda deployment of %s in %s at %s",
        request.function_name,
        request.region,
        datetime.now(tz=UTC).isoformat(timespec="seconds"),
    )

    resolved, identity = run_preflight(request, backend, config, base_dir=base_dir)
    version = DeploymentDriver(backend, config, sleep=sleep).deploy(resolved)
    alias = AliasResolver(backend, config).resolve(resolved, version)

    return DeploymentResult(
        request=resolved,
        identity=identity,
        version=version,
        alias=alias,
        duration_seconds=time.monotonic() - started,
    )
