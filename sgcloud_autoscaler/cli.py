#!/usr/bin/env python3
"""
Operator command line for the sgcloud autoscaler provider.

Runs single scale operations against the configured cluster with the same
invariant checks the autoscaler applies.
"""

import argparse
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from tabulate import tabulate  # type: ignore[import-untyped]

from .scaling.provider import CloudProvider
from .utils.config import load_config
from .utils.exceptions import SgCloudError
from .utils.logging import get_logger, setup_logging

logger = get_logger("sgcloud_autoscaler.cli")

ProviderFactory = Callable[..., CloudProvider]


def show_groups(provider: CloudProvider) -> None:
    rows = [[g.id, g.min_size, g.max_size, g.region or "-"] for g in provider.node_groups()]
    print(tabulate(rows, headers=["Group", "Min", "Max", "Region"], tablefmt="grid"))


def show_nodes(provider: CloudProvider, group_id: str) -> None:
    group = provider.group(group_id)
    instances = provider.controller.list_instances(group)
    if not instances:
        print(f"No nodes found in group {group_id}.")
        return

    rows = [
        [i.id, i.name, i.status, i.spec, i.cpu_use or "N/A", i.mem_use or "N/A", i.up_time]
        for i in instances
    ]
    headers = ["ID", "Name", "Status", "Spec", "CPU", "Mem", "Up"]
    print(tabulate(rows, headers=headers, tablefmt="grid"))


def show_cluster(provider: CloudProvider) -> None:
    cluster = provider.describe_cluster()
    rows = [
        ["ID", cluster.id],
        ["Name", cluster.cluster_name or cluster.name],
        ["Nodes", cluster.node_count],
        ["K8s version", cluster.k8s_version],
    ]
    print(tabulate(rows, tablefmt="grid"))


def show_scaling_group(provider: CloudProvider, group_id: str) -> None:
    sg = provider.describe_group(group_id)
    rows = [
        ["Instance type", sg.instance_type],
        ["CPU", sg.cpu],
        ["Memory (GB)", sg.memory],
        ["GPUs", f"{sg.gpu_count} {sg.gpu_card}".strip()],
        ["Disk (GB)", sg.disk_size],
        ["Tags", ", ".join(f"{k}={v}" for k, v in sg.tag_map().items()) or "-"],
    ]
    print(tabulate(rows, tablefmt="grid"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sgcloud-autoscaler",
        description="Inspect and scale sgcloud node groups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the node groups declared on the command line
  sgcloud-autoscaler --config cloud.json --nodes 1:5:workers groups

  # Add two nodes to a group
  sgcloud-autoscaler --config cloud.json --nodes 1:5:workers increase workers 2

  # Delete nodes (all must belong to the same group)
  sgcloud-autoscaler --config cloud.json --nodes 1:5:workers delete node-a node-b
        """,
    )
    parser.add_argument("--config", type=Path, help="Cloud config JSON file")
    parser.add_argument(
        "--nodes",
        action="append",
        default=[],
        metavar="MIN:MAX:ID",
        help="Node group spec, may be repeated",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )
    parser.add_argument("--log-file", type=str, help="Also write logs to this file")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("groups", help="List node groups")
    nodes = sub.add_parser("nodes", help="List the nodes of a group")
    nodes.add_argument("group")
    size = sub.add_parser("size", help="Show the live size of a group")
    size.add_argument("group")
    increase = sub.add_parser("increase", help="Add nodes to a group")
    increase.add_argument("group")
    increase.add_argument("delta", type=int)
    delete = sub.add_parser("delete", help="Delete instances by id")
    delete.add_argument("instance_ids", nargs="+")
    sub.add_parser("describe-cluster", help="Describe the configured cluster")
    describe_group = sub.add_parser("describe-group", help="Describe a scaling group")
    describe_group.add_argument("group")
    return parser


def run(args: argparse.Namespace, provider: CloudProvider) -> None:
    if args.command == "groups":
        show_groups(provider)
    elif args.command == "nodes":
        show_nodes(provider, args.group)
    elif args.command == "size":
        print(provider.current_size(args.group))
    elif args.command == "increase":
        provider.increase(args.group, args.delta)
        logger.info(f"Requested {args.delta} more nodes for group {args.group}")
    elif args.command == "delete":
        provider.delete(args.instance_ids)
        logger.info(f"Deleted instances {args.instance_ids}")
    elif args.command == "describe-cluster":
        show_cluster(provider)
    elif args.command == "describe-group":
        show_scaling_group(provider, args.group)


def main(
    argv: Sequence[str] | None = None,
    provider_factory: ProviderFactory = CloudProvider.build,
) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)

    provider = None
    try:
        config = load_config(args.config)
        provider = provider_factory(config, args.nodes)
        run(args, provider)
    except KeyboardInterrupt:
        logger.info("Operation interrupted by user")
        return 130
    except (SgCloudError, ValueError) as e:
        logger.error(f"Operation failed: {e}")
        return 1
    finally:
        if provider is not None:
            provider.cleanup()
    return 0


if __name__ == "__main__":
    sys.exit(main())
