"""Unit tests for the deploy CLI entry point."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from lambda_deploy import cli
from lambda_deploy.models import UpdateStatus


@pytest.fixture(autouse=True)
def _restore_log_level() -> Iterator[None]:
    package_logger = logging.getLogger("lambda_deploy")
    level = package_logger.level
    yield
    package_logger.setLevel(level)


@pytest.fixture
def wired(backend: Any, workdir: Path, monkeypatch: pytest.MonkeyPatch) -> Any:
    """Run the CLI from workdir against the in-memory backend."""
    monkeypatch.chdir(workdir)
    monkeypatch.setattr(cli, "_build_backend", lambda region, config: backend)
    return backend


def test_parse_args_defaults() -> None:
    args = cli.parse_args(["orders-api", "us-east-1"])
    assert args.function_name == "orders-api"
    assert args.region == "us-east-1"
    assert args.branch_name is None
    assert args.artifact is None
    assert args.verbose is False
    assert args.verify is True


def test_successful_deploy_prints_summary(wired: Any, capsys: pytest.CaptureFixture[str]) -> None:
    wired.next_version = 42

    assert cli.main(["orders-api", "us-east-1", "main"]) == 0

    out = capsys.readouterr().out
    assert (
        "Deployment succeeded: alias 'production' -> version 42 (created) "
        "for orders-api in us-east-1" in out
    )
    assert "Total execution time:" in out
    assert wired.aliases == {"production": "42"}


def test_branch_deploy_updates_existing_alias(
    wired: Any, capsys: pytest.CaptureFixture[str]
) -> None:
    wired.aliases = {"feature-x": "3"}
    assert cli.main(["orders-api", "eu-west-2", "feature-x"]) == 0
    assert "alias 'feature-x' -> version 1 (updated)" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [[], ["orders-api"], ["orders-api", "us-east-1", "main", "extra"]])
def test_wrong_argument_count_is_invalid_arguments(
    wired: Any, argv: list[str], capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(argv) == 1

    err = capsys.readouterr().err
    assert "usage: deploy" in err
    assert "Deployment failed [InvalidArguments]" in err
    assert wired.calls == []


def test_blank_function_name_is_invalid_arguments(
    wired: Any, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(["", "us-east-1", "main"]) == 1
    assert "[InvalidArguments]" in capsys.readouterr().err


def test_missing_artifact_fails_without_remote_calls(
    wired: Any, workdir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (workdir / "dist" / "index.zip").unlink()

    assert cli.main(["orders-api", "us-east-1", "main"]) == 1

    err = capsys.readouterr().err
    assert "Deployment failed [ArtifactNotFound]" in err
    assert "fix the problem above" in err
    assert wired.calls == []


def test_explicit_artifact_is_probed_first(wired: Any, workdir: Path) -> None:
    custom = workdir / "build" / "app.zip"
    custom.parent.mkdir()
    custom.write_bytes(b"PK custom bundle")

    assert cli.main(["orders-api", "us-east-1", "main", "--artifact", "build/app.zip"]) == 0
    assert wired.uploads == [b"PK custom bundle"]


def test_no_verify_skips_alias_read_back(wired: Any) -> None:
    wired.drift_to = "7"
    assert cli.main(["orders-api", "us-east-1", "main", "--no-verify"]) == 0
    assert wired.count("GetAlias") == 1


def test_drift_without_no_verify_fails(wired: Any, capsys: pytest.CaptureFixture[str]) -> None:
    wired.drift_to = "7"
    assert cli.main(["orders-api", "us-east-1", "main"]) == 1
    assert "[AliasVerificationFailed]" in capsys.readouterr().err


def test_readiness_timeout_suggests_rerun(
    wired: Any, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("LAMBDA_DEPLOY_READINESS_ATTEMPTS", "2")
    monkeypatch.setenv("LAMBDA_DEPLOY_READINESS_DELAY_SECONDS", "0")
    wired.status_script = [UpdateStatus.IN_PROGRESS]

    assert cli.main(["orders-api", "us-east-1", "main"]) == 1

    err = capsys.readouterr().err
    assert "Deployment failed [ReadinessTimeout]" in err
    assert "re-run the deploy" in err
    assert wired.count("PublishVersion") == 0


def test_invalid_environment_config(
    wired: Any, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("LAMBDA_DEPLOY_PUBLISH_ATTEMPTS", "zero")
    assert cli.main(["orders-api", "us-east-1", "main"]) == 1
    assert "[InvalidConfiguration]" in capsys.readouterr().err


@pytest.mark.parametrize(
    ("env", "argv_extra"), [({"DEBUG": "1"}, []), ({}, ["--verbose"])]
)
def test_debug_logging_switch(
    wired: Any, monkeypatch: pytest.MonkeyPatch, env: dict[str, str], argv_extra: list[str]
) -> None:
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    assert cli.main(["orders-api", "us-east-1", "main", *argv_extra]) == 0
    assert logging.getLogger("lambda_deploy").level == logging.DEBUG


def test_default_logging_is_info(wired: Any) -> None:
    assert cli.main(["orders-api", "us-east-1", "main"]) == 0
    assert logging.getLogger("lambda_deploy").level == logging.INFO


def test_unrecognised_debug_value_does_not_abort(
    wired: Any, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("DEBUG", "2")
    assert cli.main(["orders-api", "us-east-1", "main"]) == 0
    assert "Deployment succeeded" in capsys.readouterr().out
    assert logging.getLogger("lambda_deploy").level == logging.INFO


def test_unknown_aws_profile_is_invalid_credentials(
    workdir: Path,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("AWS_PROFILE", "does-not-exist")
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "no-config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "no-credentials"))

    assert cli.main(["orders-api", "us-east-1", "main"]) == 1

    err = capsys.readouterr().err
    assert "Deployment failed [InvalidCredentials]" in err
    assert "does-not-exist" in err


def test_malformed_region_is_invalid_arguments(
    workdir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(workdir)

    assert cli.main(["orders-api", "us_east_1", "main"]) == 1

    err = capsys.readouterr().err
    assert "Deployment failed [InvalidArguments]" in err
    assert "us_east_1" in err
