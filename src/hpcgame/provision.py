"""Sandbox provisioning flow."""

import logging
import os

from kubernetes.client.rest import ApiException

from .errors import DeletionFailed, NotFound, ProvisioningFailed, ValidationFailed
from .k8s import get_pod_summary
from .models import WorkloadRequest
from .templates import create_pod_manifest, to_yaml
from .volumes import api_error_detail, default_claim_name

logger = logging.getLogger(__name__)


def parse_volume_list(text):
    """Split a comma-separated volume list, dropping blanks."""
    if not text:
        return []
    return [vol.strip() for vol in text.split(",") if vol.strip()]


def build_request(partition, cpu, memory=None, gpu=0, image=None, name=None, volumes=None):
    """Validate quantities against ``partition`` and build a WorkloadRequest."""
    for label, value in (("CPU", cpu), ("memory", memory), ("GPU", gpu)):
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise ValidationFailed(f"Invalid {label} value: {value!r}, must be a whole number")

    if cpu is None or cpu <= 0 or cpu > partition.cpu_limit:
        raise ValidationFailed(
            f"Invalid CPU value: {cpu}, partition limit: {partition.cpu_limit}"
        )

    if not memory:
        memory = cpu * 2
        logger.info(f"Memory not specified, using default: {memory}GiB")
    if memory <= 0 or memory > partition.memory_limit:
        raise ValidationFailed(
            f"Invalid memory value: {memory}GiB, partition limit: {partition.memory_limit}GiB"
        )

    gpu = gpu or 0
    if gpu < 0:
        raise ValidationFailed(f"Invalid GPU value: {gpu}")
    if gpu > 0 and not partition.has_gpu:
        raise ValidationFailed(f"Partition {partition.name} has no GPUs")

    if not image:
        image = partition.default_image
        if image is None:
            raise ValidationFailed(
                f"Partition {partition.name} has no default images, please specify an image"
            )
        logger.info(f"Image not specified, using default: {image}")

    return WorkloadRequest(
        partition=partition,
        name=name or f"container-{os.getpid()}",
        cpu=cpu,
        memory=memory,
        gpu=gpu,
        image=image,
        volumes=[vol.strip() for vol in (volumes or []) if vol.strip()],
    )


def submit_pod(v1, namespace, pod):
    try:
        return v1.create_namespaced_pod(namespace=namespace, body=pod)
    except ApiException as e:
        logger.error(f"Failed to create pod: {e}")
        raise ProvisioningFailed(
            f"failed to deploy container {pod.metadata.name}", api_error_detail(e)
        ) from e


def create_container(cache, volumes, v1, namespace, partition_name, cpu, memory=None,
                     gpu=0, image=None, name=None, extra_volumes=None):
    """Resolve, validate, provision storage and submit a sandbox pod.

    A failure to create the default volume is logged and the pod is still
    submitted, mirroring what the cluster does for pods whose claims are not
    bound yet.
    """
    partition = cache.get(partition_name)
    request = build_request(
        partition, cpu, memory=memory, gpu=gpu, image=image, name=name, volumes=extra_volumes
    )

    try:
        claim_name = volumes.ensure_default_claim(partition.name)
    except ProvisioningFailed as e:
        logger.warning(f"Unable to create default volume: {e}")
        claim_name = default_claim_name(partition.name)

    for vol in request.volumes:
        try:
            exists = volumes.claim_exists(vol)
        except ProvisioningFailed as e:
            logger.warning(f"Could not verify volume {vol}: {e}")
            continue
        if not exists:
            logger.warning(
                f"Volume {vol} may not exist. Use 'hpcgame volume ls' to list available volumes"
            )

    pod = create_pod_manifest(request, claim_name)
    logger.debug(f"Generated pod manifest:\n{to_yaml(pod)}")

    logger.info(f"Creating container {request.name} in partition {partition.name}")
    submit_pod(v1, namespace, pod)
    return pod


def list_containers(v1, namespace):
    try:
        pods = v1.list_namespaced_pod(namespace=namespace)
    except ApiException as e:
        logger.error(f"Error listing pods: {e}")
        raise ProvisioningFailed("failed to get container list", api_error_detail(e)) from e
    return [get_pod_summary(pod) for pod in pods.items or []]


def delete_container(v1, namespace, name):
    try:
        v1.delete_namespaced_pod(name=name, namespace=namespace)
    except ApiException as e:
        if e.status == 404:
            raise NotFound(f"container {name} not found") from e
        logger.error(f"Error deleting pod {name}: {e}")
        raise DeletionFailed(f"failed to remove container {name}", api_error_detail(e)) from e
    logger.info(f"Container {name} removed")
