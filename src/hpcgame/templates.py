"""Kubernetes resource templates."""

import yaml
from kubernetes import client

from . import constants


def create_pvc_manifest(pvc_name, storage_class, size=constants.DEFAULT_CLAIM_SIZE,
                        access_mode=constants.DEFAULT_ACCESS_MODE):
    """Create PVC manifest."""
    return client.V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=client.V1ObjectMeta(name=pvc_name),
        spec=client.V1PersistentVolumeClaimSpec(
            access_modes=[access_mode],
            storage_class_name=storage_class,
            resources=client.V1VolumeResourceRequirements(
                requests={"storage": size}
            ),
        ),
    )


def extra_mount_path(volume_name):
    return f"{constants.EXTRA_MOUNT_ROOT}/{volume_name}"


def _resource_quantities(request):
    quantities = {
        "cpu": f"{request.cpu * 1000}m",
        "memory": f"{request.memory}Gi",
    }
    if request.gpu > 0:
        quantities[request.partition.gpu_tag] = str(request.gpu)
    return quantities


def create_pod_manifest(request, default_claim_name):
    """Create the sandbox pod manifest for a validated WorkloadRequest.

    Requests equal limits so the pod gets the Guaranteed QoS class. The
    default claim is always mounted at the working directory and each extra
    claim gets a sequentially numbered volume under /mnt.
    """
    volume_mounts = [
        client.V1VolumeMount(
            name=constants.DEFAULT_VOLUME_NAME,
            mount_path=constants.DEFAULT_MOUNT_PATH,
        )
    ]
    volumes = [
        client.V1Volume(
            name=constants.DEFAULT_VOLUME_NAME,
            persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                claim_name=default_claim_name
            ),
        )
    ]
    for i, volume_name in enumerate(request.volumes):
        mount_name = f"{constants.EXTRA_VOLUME_PREFIX}-{i}"
        volume_mounts.append(
            client.V1VolumeMount(name=mount_name, mount_path=extra_mount_path(volume_name))
        )
        volumes.append(
            client.V1Volume(
                name=mount_name,
                persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                    claim_name=volume_name
                ),
            )
        )

    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(name=request.name),
        spec=client.V1PodSpec(
            node_selector={constants.PARTITION_NODE_SELECTOR: request.partition.name},
            restart_policy="Never",
            containers=[
                client.V1Container(
                    name=constants.CONTAINER_NAME,
                    image=request.image,
                    command=list(constants.CONTAINER_COMMAND),
                    working_dir=constants.DEFAULT_MOUNT_PATH,
                    security_context=client.V1SecurityContext(
                        capabilities=client.V1Capabilities(
                            add=list(constants.CONTAINER_CAPABILITIES)
                        ),
                    ),
                    resources=client.V1ResourceRequirements(
                        requests=_resource_quantities(request),
                        limits=_resource_quantities(request),
                    ),
                    volume_mounts=volume_mounts,
                )
            ],
            volumes=volumes,
        ),
    )


def to_dict(obj):
    """Serialize a kubernetes model into plain API-shaped data."""
    return client.ApiClient().sanitize_for_serialization(obj)


def to_yaml(obj):
    return yaml.safe_dump(to_dict(obj), sort_keys=False)
