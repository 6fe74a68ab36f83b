"""
deploy: Publish a Lambda artifact and point a branch alias at the new version.

Uploads the bundle, waits for Lambda to apply it, publishes an immutable
version and creates or updates the alias for the branch ("main" deploys to
"production", any other branch deploys to an alias of the same name).

Exit codes:
    0  Alias verified pointing at the newly published version
    1  Any classified failure (the final line names the classification)

Usage:
    deploy <function-name> <region> [branch-name] [--artifact PATH] [--verbose] [--no-verify]

Example:
    deploy orders-api us-east-1
    DEBUG=1 deploy orders-api eu-west-2 feature-x
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import NoReturn

from lambda_deploy.backend import DeploymentBackend, LambdaBackend
from lambda_deploy.config import DeployConfig
from lambda_deploy.exceptions import (
    BackendCredentialsError,
    BackendError,
    DeploymentError,
    InvalidArgumentsError,
    InvalidCredentialsError,
)
from lambda_deploy.inputs import resolve_request
from lambda_deploy.models import DeploymentResult
from lambda_deploy.workflow import run_deployment

logger = logging.getLogger("lambda_deploy")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors as InvalidArgumentsError."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        raise InvalidArgumentsError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="deploy",
        description="Deploy a Lambda artifact and point the branch alias at the new version.",
    )
    parser.add_argument("function_name", help="Lambda function name")
    parser.add_argument("region", help="AWS region of the function")
    parser.add_argument(
        "branch_name",
        nargs="?",
        default=None,
        help="Branch to deploy as (default: current git branch, else 'main')",
    )
    parser.add_argument(
        "--artifact",
        default=None,
        help="Explicit bundle path, probed before the configured candidates",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging, including raw AWS responses (same as DEBUG=1)",
    )
    parser.add_argument(
        "--no-verify",
        dest="verify",
        action="store_false",
        help="Skip re-reading the alias after it is updated",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _build_backend(region: str, config: DeployConfig) -> DeploymentBackend:
    try:
        return LambdaBackend.for_region(region, config)
    except BackendCredentialsError as exc:
        raise InvalidCredentialsError(
            f"AWS profile or credentials unusable: {exc}. "
            "Check AWS_PROFILE and the shared config files."
        ) from exc
    except BackendError as exc:
        raise InvalidArgumentsError(
            f"Cannot create AWS clients for region {region!r}: {exc}"
        ) from exc


def _config_for(args: argparse.Namespace) -> DeployConfig:
    config = DeployConfig.from_env()
    artifact_paths = None
    if args.artifact:
        artifact_paths = (args.artifact, *config.artifact_paths)
    return config.with_overrides(
        artifact_paths=artifact_paths,
        verify_alias=None if args.verify else False,
        verbose=True if args.verbose else None,
    )


def run(args: argparse.Namespace) -> DeploymentResult:
    config = _config_for(args)
    configure_logging(config.verbose)
    request = resolve_request(args.function_name, args.region, args.branch_name)
    backend = _build_backend(request.region, config)
    return run_deployment(request, backend, config)


def _report_success(result: DeploymentResult, elapsed: float) -> None:
    request = result.request
    print(
        f"Deployment succeeded: alias '{result.alias.alias_name}' -> version "
        f"{result.version} ({result.alias.action}) for {request.function_name} "
        f"in {request.region}"
    )
    print(f"Total execution time: {elapsed:.1f} seconds")


def _report_failure(exc: DeploymentError, elapsed: float) -> None:
    print(f"Deployment failed [{exc.classification}]: {exc}", file=sys.stderr)
    if exc.rerun_safe:
        print("Recovery: re-run the deploy; every step is safe to repeat.", file=sys.stderr)
    else:
        print("Recovery: fix the problem above before re-running.", file=sys.stderr)
    print(f"Total execution time: {elapsed:.1f} seconds", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    started = time.monotonic()
    try:
        args = parse_args(argv)
        result = run(args)
    except DeploymentError as exc:
        _report_failure(exc, time.monotonic() - started)
        return 1
    _report_success(result, time.monotonic() - started)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
