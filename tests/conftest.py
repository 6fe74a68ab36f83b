"""Shared fixtures: AWS env, bundle artifacts and an in-memory Lambda backend."""

from __future__ import annotations

import io
import os
import zipfile
from pathlib import Path
from typing import Any

import pytest

from lambda_deploy.config import DeployConfig
from lambda_deploy.exceptions import BackendConflict, BackendError, BackendNotFound
from lambda_deploy.models import AliasState, CallerIdentity, CodeUpload, UpdateState, UpdateStatus

REGION = "us-east-1"
ACCOUNT_ID = "123456789012"


def make_zip(source: str = "exports.handler = async () => 'ok';\n") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("index.js", source)
    return buffer.getvalue()


class FakeLambdaBackend:
    """
    In-memory stand-in for LambdaBackend.

    Knobs:
      status_script    statuses (or BackendErrors) reported after each upload,
                       consumed in order; the last entry repeats forever
      idle_status      status reported before any upload
      publish_script   raw Version values (or BackendErrors) returned by
                       successive publishes; once empty, versions auto-increment
                       from next_version
      aliases          alias name -> version
      drift_to         if set, alias mutations store this version instead
      *_error          raised by the matching call when set
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.identity = CallerIdentity(
            account=ACCOUNT_ID,
            arn=f"arn:aws:iam::{ACCOUNT_ID}:user/deployer",
            user_id="AIDAEXAMPLE",
        )
        self.identity_error: BackendError | None = None
        self.upload_error: BackendError | None = None
        self.idle_status = UpdateStatus.SUCCESSFUL
        self.status_script: list[UpdateStatus | BackendError] = [UpdateStatus.SUCCESSFUL]
        self.publish_script: list[Any] = []
        self.next_version = 1
        self.aliases: dict[str, str] = {}
        self.alias_lookup_error: BackendError | None = None
        self.alias_mutation_error: BackendError | None = None
        self.drift_to: str | None = None
        self.uploads: list[bytes] = []
        self.published: list[str] = []
        self._pending: list[UpdateStatus | BackendError] = []

    def count(self, call: str) -> int:
        return self.calls.count(call)

    def get_caller_identity(self) -> CallerIdentity:
        self.calls.append("GetCallerIdentity")
        if self.identity_error:
            raise self.identity_error
        return self.identity

    def update_code(self, function_name: str, zip_bytes: bytes) -> CodeUpload:
        self.calls.append("UpdateCode")
        if self.upload_error:
            raise self.upload_error
        self.uploads.append(zip_bytes)
        self._pending = list(self.status_script)
        return CodeUpload(code_sha256=None, code_size=len(zip_bytes))

    def get_update_state(self, function_name: str) -> UpdateState:
        self.calls.append("GetUpdateStatus")
        if not self._pending:
            return UpdateState(status=self.idle_status)
        item = self._pending.pop(0) if len(self._pending) > 1 else self._pending[0]
        if isinstance(item, BackendError):
            raise item
        reason = "bad bundle" if item is UpdateStatus.FAILED else None
        return UpdateState(status=item, reason=reason)

    def publish_version(self, function_name: str, *, description: str = "") -> Any:
        self.calls.append("PublishVersion")
        if self.publish_script:
            item = self.publish_script.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        version = str(self.next_version)
        self.next_version += 1
        self.published.append(version)
        return version

    def get_alias(self, function_name: str, alias_name: str) -> AliasState:
        self.calls.append("GetAlias")
        if self.alias_lookup_error:
            raise self.alias_lookup_error
        if alias_name not in self.aliases:
            raise BackendNotFound("GetAlias", code="ResourceNotFoundException")
        return AliasState(alias_name=alias_name, function_version=self.aliases[alias_name])

    def create_alias(
        self, function_name: str, alias_name: str, function_version: str
    ) -> AliasState:
        self.calls.append("CreateAlias")
        if self.alias_mutation_error:
            raise self.alias_mutation_error
        if alias_name in self.aliases:
            raise BackendConflict(
                "CreateAlias",
                code="ResourceConflictException",
                detail=f"Alias already exists: {alias_name}",
            )
        return self._store(alias_name, function_version)

    def update_alias(
        self, function_name: str, alias_name: str, function_version: str
    ) -> AliasState:
        self.calls.append("UpdateAlias")
        if self.alias_mutation_error:
            raise self.alias_mutation_error
        if alias_name not in self.aliases:
            raise BackendNotFound("UpdateAlias", code="ResourceNotFoundException")
        return self._store(alias_name, function_version)

    def _store(self, alias_name: str, function_version: str) -> AliasState:
        self.aliases[alias_name] = self.drift_to or function_version
        return AliasState(alias_name=alias_name, function_version=function_version)


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Dummy credentials and region so boto3/moto never reach real AWS."""
    monkeypatch.setenv("AWS_REGION", REGION)
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.delenv("DEBUG", raising=False)
    for name in list(os.environ):
        if name.startswith("LAMBDA_DEPLOY_"):
            monkeypatch.delenv(name)


@pytest.fixture
def backend() -> FakeLambdaBackend:
    return FakeLambdaBackend()


@pytest.fixture
def config() -> DeployConfig:
    return DeployConfig()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def sleep(sleeps: list[float]) -> Any:
    return sleeps.append


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """A build directory with dist/index.zip in place."""
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.zip").write_bytes(make_zip())
    return tmp_path
