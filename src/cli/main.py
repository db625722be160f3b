#!/usr/bin/env python3
"""
HPCGame CLI

A command-line interface for running resource-bounded containers on the
HPCGame cluster partitions.
"""

import argparse
import logging
import os
import sys

from hpcgame import constants
from hpcgame.catalog import CatalogCache
from hpcgame.errors import HpcgameError
from hpcgame.k8s import load_clients, resolve_namespace
from hpcgame.provision import create_container, delete_container, list_containers, parse_volume_list
from hpcgame.templates import extra_mount_path
from hpcgame.volumes import VolumeManager

logger = logging.getLogger(__name__)


def configure_logging(debug=False):
    """Configure root logging for the CLI."""
    logging.basicConfig(
        level=logging.DEBUG if debug or os.environ.get("DEBUG") else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def connect():
    """Return (CoreV1Api, namespace) for the saved kubeconfig."""
    return load_clients(), resolve_namespace()


def format_partition(index, partition):
    info = (
        f"[{index}] Partition: {partition.name}\n"
        f"\tDescription: {partition.description}\n"
        f"\tCPU Limit: {partition.cpu_limit}\n"
        f"\tMemory Limit: {partition.memory_limit}GiB\n"
    )
    if partition.has_gpu:
        info += f"\tAvailable GPU: {partition.gpu_name}\n"
    info += "\tVerified images (custom images also supported):"
    for j, image in enumerate(partition.images):
        info += f"\n\t\t[{j}] {image}"
    return info


def cmd_lspart(args):
    """List available partitions."""
    partitions = CatalogCache().load()
    print("Available partitions:")
    print("-" * 48)
    for i, partition in enumerate(partitions):
        print(format_partition(i, partition))
        print("-" * 48)


def cmd_images(args):
    """List verified images for each partition."""
    partitions = CatalogCache().load()
    print("Available images by partition:")
    print("-" * 48)
    for partition in partitions:
        print(f"Partition: {partition.name}")
        for image in partition.images:
            print(f"  {image}")
        print("-" * 48)
    print("Note: Custom images are also supported if compatible with the partition")


def cmd_create(args):
    """Create a container."""
    v1, namespace = connect()
    extra_volumes = parse_volume_list(args.volumes)
    pod = create_container(
        CatalogCache(),
        VolumeManager(v1, namespace),
        v1,
        namespace,
        args.partition,
        args.cpu,
        memory=args.memory,
        gpu=args.gpu,
        image=args.image,
        name=args.name,
        extra_volumes=extra_volumes,
    )
    name = pod.metadata.name
    print(f"✓ Container {name} creation request submitted")
    print(f"  - Default partition volume mounted to {constants.DEFAULT_MOUNT_PATH} (default working directory)")
    for vol in extra_volumes:
        print(f"  - Volume '{vol}' mounted to {extra_mount_path(vol)}")


def cmd_ps(args):
    """List containers in the current namespace."""
    v1, namespace = connect()
    containers = list_containers(v1, namespace)
    print(f"{'CONTAINER':<30} {'IMAGE':<40} {'STATUS':<12} {'CREATED':<27} NODE")
    for c in containers:
        print(f"{c['name']:<30} {c['image']:<40} {c['status']:<12} {c['created']:<27} {c['node']}")


def cmd_rm(args):
    """Remove a container."""
    v1, namespace = connect()
    print(f"Removing container {args.name}...")
    delete_container(v1, namespace, args.name)
    print(f"✓ Container {args.name} removed")


def cmd_volume_ls(args):
    """List volumes."""
    v1, namespace = connect()
    claims = VolumeManager(v1, namespace).list_claims()
    print("VOLUME LIST")
    print("=" * 79)
    print(f"{'NAME':<25} {'SIZE':<15} {'STORAGE CLASS':<20} {'ACCESS MODE':<15} {'STATUS':<10} NOTES")
    print("-" * 79)
    for claim in claims:
        notes = "Default volume (cannot be removed)" if claim.is_default else ""
        print(
            f"{claim.name:<25} {claim.size:<15} {claim.storage_class:<20} "
            f"{','.join(claim.access_modes):<15} {claim.phase:<10} {notes}"
        )
    print("=" * 79)


def cmd_volume_create(args):
    """Create a volume."""
    v1, namespace = connect()
    VolumeManager(v1, namespace).create_claim(args.name, args.size, args.storage_class, args.access_mode)
    print(f"✓ Volume {args.name} created")


def cmd_volume_rm(args):
    """Delete a volume."""
    v1, namespace = connect()
    VolumeManager(v1, namespace).delete_claim(args.name)
    print(f"✓ Volume {args.name} deleted")


def cmd_version(args):
    print(f"HPCGame CLI version {constants.VERSION}")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="hpcgame",
        description="HPCGame CLI - run containers on cluster partitions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a container with 4 CPUs and 8GiB RAM in the x86 partition
  %(prog)s create -p x86 -c 4 -m 8

  # Run a GPU container with extra volumes
  %(prog)s run -p gpu -c 8 -g 1 -v my-data,shared-data -n my-gpu-container pytorch/pytorch

  # Manage volumes
  %(prog)s volume ls
  %(prog)s volume create my-data 10Gi x86-amd-default-sc ReadWriteMany
  %(prog)s volume rm my-data

Note:
  - Default partition volume is automatically mounted to /partition-data
  - Additional volumes are mounted to /mnt/VOLUME_NAME
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Create command
    for command in ("create", "run"):
        create_parser = subparsers.add_parser(command, help="Create a new container")
        create_parser.add_argument("--partition", "-p", required=True, help="Partition name")
        create_parser.add_argument("--cpu", "-c", type=int, required=True, help="Number of CPUs")
        create_parser.add_argument(
            "--memory", "-m", type=int, default=None,
            help="Memory in GiB (default: 2 x CPU)",
        )
        create_parser.add_argument(
            "--gpu", "-g", type=int, default=0, help="Number of GPUs (default: 0)"
        )
        create_parser.add_argument(
            "--volumes", "--volume", "-v", default="",
            help="Additional volumes to mount (comma-separated)",
        )
        create_parser.add_argument(
            "--image", "-i", help="Container image (default: first partition image)"
        )
        create_parser.add_argument("--name", "-n", help="Container name")
        if command == "run":
            create_parser.add_argument("image_arg", nargs="?", metavar="IMAGE", help="Container image")
        create_parser.set_defaults(func=cmd_create)

    lspart_parser = subparsers.add_parser("lspart", help="List available partitions")
    lspart_parser.set_defaults(func=cmd_lspart)

    images_parser = subparsers.add_parser("images", help="List available images for each partition")
    images_parser.set_defaults(func=cmd_images)

    for command in ("ps", "ls"):
        ps_parser = subparsers.add_parser(command, help="List containers")
        ps_parser.set_defaults(func=cmd_ps)

    for command in ("rm", "delete"):
        rm_parser = subparsers.add_parser(command, help="Remove a container")
        rm_parser.add_argument("name", help="Container name")
        rm_parser.set_defaults(func=cmd_rm)

    # Volume commands
    volume_parser = subparsers.add_parser("volume", help="Manage persistent volumes")
    volume_subparsers = volume_parser.add_subparsers(dest="volume_command", help="Volume command")

    volume_ls_parser = volume_subparsers.add_parser("ls", aliases=["list"], help="List all volumes")
    volume_ls_parser.set_defaults(func=cmd_volume_ls)

    volume_create_parser = volume_subparsers.add_parser("create", help="Create a new volume")
    volume_create_parser.add_argument("name", help="Volume name")
    volume_create_parser.add_argument("size", help="Volume size with units (e.g. 10Gi)")
    volume_create_parser.add_argument("storage_class", help="Storage class name")
    volume_create_parser.add_argument(
        "access_mode", nargs="?", default=constants.DEFAULT_ACCESS_MODE,
        help=f"Access mode (default: {constants.DEFAULT_ACCESS_MODE})",
    )
    volume_create_parser.set_defaults(func=cmd_volume_create)

    volume_rm_parser = volume_subparsers.add_parser(
        "rm", aliases=["delete", "remove"], help="Delete a volume"
    )
    volume_rm_parser.add_argument("name", help="Volume name")
    volume_rm_parser.set_defaults(func=cmd_volume_rm)

    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    if getattr(args, "image_arg", None) and not args.image:
        args.image = args.image_arg

    configure_logging(args.debug)
    try:
        args.func(args)
    except HpcgameError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
