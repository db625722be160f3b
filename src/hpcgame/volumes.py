"""Persistent volume claim lifecycle."""

import json
import logging

from kubernetes.client.rest import ApiException

from . import constants
from .errors import DeletionFailed, NotFound, ProvisioningFailed, ReservedName
from .models import VolumeClaim
from .templates import create_pvc_manifest

logger = logging.getLogger(__name__)


def _dashed(partition_name):
    return partition_name.replace("_", "-")


def default_claim_name(partition_name):
    """Name of the default claim backing ``partition_name``."""
    return f"{_dashed(partition_name)}{constants.DEFAULT_CLAIM_SUFFIX}"


def default_storage_class(partition_name):
    """Storage class used for the default claim of ``partition_name``."""
    return f"{_dashed(partition_name)}{constants.DEFAULT_STORAGE_CLASS_SUFFIX}"


def is_protected_claim_name(name):
    """Whether ``name`` uses the reserved default claim marker."""
    return constants.DEFAULT_CLAIM_SUFFIX in name


def api_error_detail(e):
    """Extract the API server message from an ApiException."""
    if e.body:
        try:
            error_body = json.loads(e.body)
            if isinstance(error_body, dict) and "message" in error_body:
                return error_body["message"]
        except ValueError:
            pass
        return str(e.body)
    return e.reason or str(e)


class VolumeManager:
    """Create, list and delete claims in a single namespace."""

    def __init__(self, v1, namespace):
        self.v1 = v1
        self.namespace = namespace

    def claim_exists(self, name):
        try:
            self.v1.read_namespaced_persistent_volume_claim(name=name, namespace=self.namespace)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            logger.error(f"Error checking PVC {name}: {e}")
            raise ProvisioningFailed(f"failed to check volume {name}", api_error_detail(e)) from e

    def ensure_default_claim(self, partition_name):
        """Create the partition's default claim unless it already exists."""
        claim_name = default_claim_name(partition_name)
        if self.claim_exists(claim_name):
            logger.info(f"Default volume {claim_name} already exists")
            return claim_name

        logger.info(f"Creating default volume {claim_name}")
        pvc = create_pvc_manifest(
            claim_name,
            storage_class=default_storage_class(partition_name),
            size=constants.DEFAULT_CLAIM_SIZE,
            access_mode=constants.DEFAULT_ACCESS_MODE,
        )
        try:
            self.v1.create_namespaced_persistent_volume_claim(namespace=self.namespace, body=pvc)
        except ApiException as e:
            if e.status == 409:
                logger.info(f"Default volume {claim_name} was created concurrently")
                return claim_name
            logger.error(f"Failed to create default volume: {e}")
            raise ProvisioningFailed(
                f"failed to create default volume {claim_name}", api_error_detail(e)
            ) from e
        logger.info(f"Default volume {claim_name} created")
        return claim_name

    def create_claim(self, name, size, storage_class, access_mode=constants.DEFAULT_ACCESS_MODE):
        if is_protected_claim_name(name):
            raise ReservedName(name, "create")

        pvc = create_pvc_manifest(name, storage_class=storage_class, size=size, access_mode=access_mode)
        try:
            self.v1.create_namespaced_persistent_volume_claim(namespace=self.namespace, body=pvc)
        except ApiException as e:
            logger.error(f"Failed to create volume {name}: {e}")
            raise ProvisioningFailed(f"failed to create volume {name}", api_error_detail(e)) from e
        logger.info(f"Volume {name} created")
        return name

    def delete_claim(self, name):
        if is_protected_claim_name(name):
            raise ReservedName(name, "delete")

        try:
            self.v1.delete_namespaced_persistent_volume_claim(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                raise NotFound(f"volume {name} not found") from e
            logger.error(f"Error deleting volume {name}: {e}")
            raise DeletionFailed(f"failed to delete volume {name}", api_error_detail(e)) from e
        logger.info(f"Volume {name} deleted")

    def list_claims(self):
        try:
            result = self.v1.list_namespaced_persistent_volume_claim(namespace=self.namespace)
        except ApiException as e:
            logger.error(f"Error listing volumes: {e}")
            raise ProvisioningFailed("failed to get volume list", api_error_detail(e)) from e

        claims = []
        for pvc in result.items or []:
            spec = pvc.spec
            requests = (spec.resources.requests or {}) if spec and spec.resources else {}
            claims.append(
                VolumeClaim(
                    name=pvc.metadata.name,
                    size=requests.get("storage", ""),
                    storage_class=(spec.storage_class_name or "") if spec else "",
                    access_modes=(spec.access_modes or []) if spec else [],
                    phase=(pvc.status.phase or "") if pvc.status else "",
                    is_default=is_protected_claim_name(pvc.metadata.name),
                )
            )
        return claims
