import json
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from hpcgame.models import Partition

CATALOG: List[Dict[str, Any]] = [
    {
        "Name": "x86",
        "Description": "AMD EPYC nodes",
        "GPUTag": "",
        "GPUName": "",
        "Images": ["hpcgame/base:latest", "hpcgame/gcc:13"],
        "CPULimit": 16,
        "MemoryLimit": 64,
    },
    {
        "Name": "gpu_a100",
        "Description": "NVIDIA A100 nodes",
        "GPUTag": "nvidia.com/gpu",
        "GPUName": "NVIDIA A100 80GB",
        "Images": ["hpcgame/cuda:12.4"],
        "CPULimit": 32,
        "MemoryLimit": 256,
    },
]


def api_exception(status: int, message: str = "") -> ApiException:
    e = ApiException(status=status, reason="Error")
    if message:
        e.body = json.dumps({"kind": "Status", "message": message})
    return e


@pytest.fixture
def catalog_payload() -> bytes:
    return json.dumps(CATALOG).encode()


@pytest.fixture
def x86() -> Partition:
    return Partition.model_validate(CATALOG[0])


@pytest.fixture
def gpu_partition() -> Partition:
    return Partition.model_validate(CATALOG[1])


@pytest.fixture
def v1() -> MagicMock:
    """CoreV1Api double where every claim is missing until created."""
    api = MagicMock()
    created: Dict[str, Any] = {}

    def read_claim(name: str, namespace: str) -> Any:
        if name not in created:
            raise api_exception(404)
        return created[name]

    def create_claim(namespace: str, body: Any) -> Any:
        if body.metadata.name in created:
            raise api_exception(409, "already exists")
        created[body.metadata.name] = body
        return body

    api.read_namespaced_persistent_volume_claim.side_effect = read_claim
    api.create_namespaced_persistent_volume_claim.side_effect = create_claim
    api.create_namespaced_pod.side_effect = lambda namespace, body: body
    api.claims = created
    return api
