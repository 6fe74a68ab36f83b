"""
lambda_deploy: Deploy a Lambda artifact and repoint a branch alias.

Layers, each depending only on the ones before it:
    inputs     -> DeploymentRequest (function, region, branch, alias)
    preflight  -> artifact located, caller identity confirmed
    driver     -> code uploaded, update applied, version published
    alias      -> alias created or repointed, then verified
"""

from lambda_deploy.alias import AliasResolver
from lambda_deploy.backend import DeploymentBackend, LambdaBackend
from lambda_deploy.config import DeployConfig
from lambda_deploy.driver import DeploymentDriver
from lambda_deploy.exceptions import BackendError, DeploymentError
from lambda_deploy.inputs import alias_for_branch, resolve_request
from lambda_deploy.models import DeploymentRequest, DeploymentResult
from lambda_deploy.workflow import run_deployment

__all__ = [
    "AliasResolver",
    "BackendError",
    "DeployConfig",
    "DeploymentBackend",
    "DeploymentDriver",
    "DeploymentError",
    "DeploymentRequest",
    "DeploymentResult",
    "LambdaBackend",
    "alias_for_branch",
    "resolve_request",
    "run_deployment",
]
