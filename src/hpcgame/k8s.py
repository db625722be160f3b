"""Kubernetes client helpers."""

import logging
import os
from pathlib import Path

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from . import constants
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def kubeconfig_path():
    """Location of the cluster credential file saved at install time."""
    override = os.environ.get("HPCGAME_KUBECONFIG")
    if override:
        return Path(override)
    return constants.HPCGAME_HOME / constants.KUBECONFIG_FILE


def _check_kubeconfig(path):
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(
            f"Kubeconfig file '{path}' not found. Save the cluster credentials there or set HPCGAME_KUBECONFIG."
        )
    return path


def load_clients(path=None):
    """Build a CoreV1Api from the credential file."""
    path = _check_kubeconfig(path or kubeconfig_path())
    try:
        api_client = config.new_client_from_config(config_file=str(path))
    except ConfigException as e:
        raise ConfigurationError(f"Invalid kubeconfig '{path}': {e}") from e
    logger.debug(f"Loaded kubeconfig from {path}")
    return client.CoreV1Api(api_client)


def resolve_namespace(path=None):
    """Namespace of the current kubeconfig context, ``default`` if unset."""
    path = _check_kubeconfig(path or kubeconfig_path())
    try:
        _, current = config.list_kube_config_contexts(config_file=str(path))
    except ConfigException as e:
        raise ConfigurationError(f"Invalid kubeconfig '{path}': {e}") from e
    namespace = (current or {}).get("context", {}).get("namespace")
    return namespace or "default"


def get_pod_summary(pod):
    """Flatten a pod into the columns shown by ``hpcgame ps``."""
    created = pod.metadata.creation_timestamp
    return {
        "name": pod.metadata.name,
        "image": pod.spec.containers[0].image if pod.spec and pod.spec.containers else "",
        "status": pod.status.phase if pod.status else "",
        "created": created.isoformat() if created else "",
        "node": (pod.spec.node_name or "") if pod.spec else "",
    }
