"""
lambda_deploy.inputs: Deployment identity resolution.

Branch fallback chain: explicit argument -> BranchLookup (git by default) -> "main".
Alias mapping:        "main" -> "production", any other branch -> itself.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from pathlib import Path

from lambda_deploy.exceptions import InvalidArgumentsError
from lambda_deploy.models import DEFAULT_BRANCH, PRODUCTION_ALIAS, DeploymentRequest

logger = logging.getLogger(__name__)

BranchLookup = Callable[[], str | None]

GIT_TIMEOUT_SECONDS = 5


def alias_for_branch(branch_name: str) -> str:
    """Map a source-control branch to the Lambda alias it deploys to."""
    if branch_name == DEFAULT_BRANCH:
        return PRODUCTION_ALIAS
    return branch_name


def git_branch(cwd: Path | None = None) -> str | None:
    """Return the checked-out git branch, or None when it cannot be determined.

    None covers: git not installed, not a repository, command timeout,
    empty output, and a detached HEAD.
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            check=False,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except FileNotFoundError:
        logger.warning("git not available")
        return None
    except subprocess.TimeoutExpired:
        logger.warning("git branch lookup timed out after %ss", GIT_TIMEOUT_SECONDS)
        return None

    if result.returncode != 0:
        logger.debug("git rev-parse failed rc=%d: %s", result.returncode, result.stderr.strip())
        return None
    branch = result.stdout.strip()
    if not branch or branch == "HEAD":
        return None
    return branch


def resolve_branch(branch_name: str | None, branch_lookup: BranchLookup) -> str:
    if branch_name is not None and branch_name.strip():
        logger.info("Using provided branch name: %s", branch_name.strip())
        return branch_name.strip()

    try:
        detected = branch_lookup()
    except Exception as exc:
        logger.warning("Branch lookup failed (%s); using '%s'", exc, DEFAULT_BRANCH)
        return DEFAULT_BRANCH

    if detected:
        logger.info("Detected git branch: %s", detected)
        return detected
    logger.warning("Could not detect git branch, using '%s'", DEFAULT_BRANCH)
    return DEFAULT_BRANCH


def resolve_request(
    function_name: str,
    region: str,
    branch_name: str | None = None,
    *,
    branch_lookup: BranchLookup = git_branch,
) -> DeploymentRequest:
    """Build the DeploymentRequest (without artifact path) for this invocation."""
    if not function_name or not function_name.strip():
        raise InvalidArgumentsError("Function name is required")
    if not region or not region.strip():
        raise InvalidArgumentsError("Region is required")

    branch = resolve_branch(branch_name, branch_lookup)
    alias = alias_for_branch(branch)
    logger.info("Branch '%s' -> Alias '%s'", branch, alias)
    return DeploymentRequest(
        function_name=function_name.strip(),
        region=region.strip(),
        branch_name=branch,
        alias_name=alias,
    )
