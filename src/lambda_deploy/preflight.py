"""
lambda_deploy.preflight: Local artifact probe and caller identity check.

Runs before any mutating call. Advisory only: the driver and alias resolver
still classify credential failures on their own calls.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from pathlib import Path

from lambda_deploy.backend import DeploymentBackend
from lambda_deploy.config import DeployConfig
from lambda_deploy.exceptions import ArtifactNotFoundError, BackendError, InvalidCredentialsError
from lambda_deploy.models import CallerIdentity, DeploymentRequest

logger = logging.getLogger(__name__)


def find_artifact(candidates: Iterable[str | Path], base_dir: Path | None = None) -> Path:
    """Return the first candidate that is an existing regular file.

    Relative candidates resolve against base_dir (default: the working directory).
    """
    root = base_dir or Path.cwd()
    searched: list[Path] = []
    for candidate in candidates:
        path = Path(candidate)
        if not path.is_absolute():
            path = root / path
        searched.append(path)
        if path.is_file():
            logger.info("Using artifact %s", path)
            return path

    logger.error("No artifact found in %s", root)
    for directory in dict.fromkeys(path.parent for path in searched):
        _log_directory(directory)
    raise ArtifactNotFoundError(searched)


def _log_directory(directory: Path) -> None:
    if not directory.is_dir():
        logger.info("%s: (no such directory)", directory)
        return
    entries = sorted(entry.name for entry in directory.iterdir())
    logger.info("%s contents: %s", directory, ", ".join(entries) or "(empty)")


def verify_credentials(backend: DeploymentBackend, region: str) -> CallerIdentity:
    """Read-only identity check against the target region."""
    logger.info("Checking AWS credentials for %s", region)
    try:
        identity = backend.get_caller_identity()
    except BackendError as exc:
        raise InvalidCredentialsError(
            f"Credential check failed for region {region}: {exc}. "
            "Configure credentials (e.g. `aws configure`) and retry."
        ) from exc
    logger.info("AWS credentials valid - Account: %s", identity.account)
    logger.info("User/Role: %s", identity.arn)
    return identity


def run_preflight(
    request: DeploymentRequest,
    backend: DeploymentBackend,
    config: DeployConfig,
    *,
    base_dir: Path | None = None,
) -> tuple[DeploymentRequest, CallerIdentity]:
    """Locate the artifact, then check credentials.

    A missing artifact fails before any remote call is issued.
    """
    artifact = find_artifact(config.artifact_paths, base_dir)
    identity = verify_credentials(backend, request.region)
    return dataclasses.replace(request, artifact_path=artifact), identity
