"""Provisioning constants and environment overrides."""

import os
from pathlib import Path

VERSION = "0.4.0"

# Local state
HPCGAME_HOME = Path(os.environ.get("HPCGAME_HOME", Path.home() / ".hpcgame"))
KUBECONFIG_FILE = "kubeconfig"
PARTITIONS_FILE = "partitions.json"
LAST_UPDATE_FILE = "partition_last_update"

# Partition catalog
PARTITIONS_URL = os.environ.get(
    "HPCGAME_PARTITIONS_URL",
    "https://hpcgame.pku.edu.cn/oss/images/public/partitions.json",
)
CATALOG_TTL_SECONDS = 86400

# Default partition volume
DEFAULT_CLAIM_SUFFIX = "-default-pvc"
DEFAULT_STORAGE_CLASS_SUFFIX = "-default-sc"
DEFAULT_CLAIM_SIZE = "200Gi"
DEFAULT_ACCESS_MODE = "ReadWriteMany"

# Pod layout
PARTITION_NODE_SELECTOR = "hpc.lcpu.dev/partition"
CONTAINER_NAME = "container"
DEFAULT_VOLUME_NAME = "default-data-volume"
DEFAULT_MOUNT_PATH = "/partition-data"
EXTRA_VOLUME_PREFIX = "extra-volume"
EXTRA_MOUNT_ROOT = "/mnt"
CONTAINER_CAPABILITIES = ["SYS_PTRACE", "IPC_LOCK"]
CONTAINER_COMMAND = ["sleep", "infinity"]
