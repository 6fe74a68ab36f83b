"""
lambda_deploy.models: Value objects for a single deploy invocation.

Nothing here is persisted. Every object is built once per invocation, handed
downstream, and never mutated (frozen dataclasses throughout).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TypeGuard

DEFAULT_BRANCH: str = "main"
PRODUCTION_ALIAS: str = "production"

# Published Lambda versions are positive integers rendered as strings.
VERSION_PATTERN = re.compile(r"[0-9]+")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class UpdateStatus(StrEnum):
    """Lambda LastUpdateStatus values. Terminal states never revert."""

    IN_PROGRESS = "InProgress"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self is not UpdateStatus.IN_PROGRESS


class DriverState(StrEnum):
    IDLE = "Idle"
    UPLOADING = "Uploading"
    AWAITING_READINESS = "AwaitingReadiness"
    PUBLISHING = "Publishing"
    PUBLISHED = "Published"
    FAILED = "Failed"


class AliasAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeploymentRequest:
    """Resolved deployment identity.

    artifact_path is None until preflight has located the bundle.
    """

    function_name: str
    region: str
    branch_name: str
    alias_name: str
    artifact_path: Path | None = None


# ---------------------------------------------------------------------------
# Backend views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CallerIdentity:
    account: str
    arn: str
    user_id: str = ""


@dataclass(frozen=True)
class CodeUpload:
    code_sha256: str | None = None
    code_size: int | None = None


@dataclass(frozen=True)
class UpdateState:
    status: UpdateStatus
    reason: str | None = None
    reason_code: str | None = None


@dataclass(frozen=True)
class AliasState:
    alias_name: str
    function_version: str | None = None

    @property
    def exists(self) -> bool:
        return self.function_version is not None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AliasOutcome:
    alias_name: str
    function_version: str
    action: AliasAction
    previous_version: str | None = None


@dataclass(frozen=True)
class DeploymentResult:
    request: DeploymentRequest
    identity: CallerIdentity
    version: str
    alias: AliasOutcome
    duration_seconds: float


def is_version_token(value: object) -> TypeGuard[str]:
    """True when value is a well-formed published version (digits only)."""
    return isinstance(value, str) and VERSION_PATTERN.fullmatch(value) is not None
