"""Command-line interface for kubeconfig-setup."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from kubeconfig_setup import __version__
from kubeconfig_setup.errors import KubeconfigError
from kubeconfig_setup.kubeconfig import DEFAULT_BACKUP_DIR, DEFAULT_KUBECONFIG, backup_file
from kubeconfig_setup.merge import (
    KubeConfigSetup,
    delete_kubeconfig_context,
    get_kubeconfig_status,
    setup_kubeconfig,
    update_kubeconfig_ip,
)

logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

console = Console(stderr=True)


def resolve_kubeconfig_path(environ: Mapping[str, str] | None = None) -> Path:
    """First non-empty entry of KUBECONFIG, otherwise ~/.kube/config."""
    env = os.environ if environ is None else environ
    for entry in env.get("KUBECONFIG", "").split(os.pathsep):
        entry = entry.strip()
        if entry:
            return Path(entry).expanduser()
    return DEFAULT_KUBECONFIG


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kubeconfig-setup",
        description="Add or update a cluster/user/context entry in a kubeconfig file",
    )
    parser.add_argument(
        "--kubeconfig",
        help="Path to kubeconfig file (default: first KUBECONFIG entry or ~/.kube/config)",
    )
    parser.add_argument(
        "--no-backup",
        action="store_true",
        help="Do not back up an existing kubeconfig before rewriting it",
    )
    parser.add_argument(
        "--backup-dir",
        default=str(DEFAULT_BACKUP_DIR),
        help="Directory for kubeconfig backups (default: ~/.kube/config_backup)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    setup = subparsers.add_parser("setup", help="Create or overwrite a cluster entry")
    setup.add_argument("name", help="Name used for the cluster, user and context")
    setup.add_argument("--server", required=True, help="API server address (host:port or URL)")
    setup.add_argument("--certificate-authority", default="", help="Path to the CA certificate")
    setup.add_argument("--client-certificate", default="", help="Path to the client certificate")
    setup.add_argument("--client-key", default="", help="Path to the client key")
    setup.add_argument(
        "--keep-context",
        action="store_true",
        help="Do not switch current-context if one is already set",
    )
    setup.add_argument(
        "--embed-certs",
        action="store_true",
        help="Store certificate contents in the kubeconfig instead of file paths",
    )

    status = subparsers.add_parser("status", help="Check whether a cluster points at an IP")
    status.add_argument("name", help="Cluster name")
    status.add_argument("--ip", required=True, help="Expected API server IP")

    update_ip = subparsers.add_parser("update-ip", help="Point a cluster at a new IP")
    update_ip.add_argument("name", help="Cluster name")
    update_ip.add_argument("--ip", required=True, help="New API server IP")

    delete = subparsers.add_parser("delete", help="Remove a cluster, user and context")
    delete.add_argument("name", help="Entry name")

    return parser.parse_args(argv)


def maybe_backup(path: Path, args: argparse.Namespace) -> None:
    if args.no_backup or not path.is_file():
        return
    backup_path = backup_file(path, Path(args.backup_dir).expanduser())
    console.print(f"[dim]Backup saved: {backup_path}[/dim]")


def run_setup(path: Path, args: argparse.Namespace) -> int:
    maybe_backup(path, args)
    config = setup_kubeconfig(
        KubeConfigSetup(
            kubeconfig_file=path,
            cluster_name=args.name,
            cluster_server_address=args.server,
            client_certificate=args.client_certificate,
            client_key=args.client_key,
            certificate_authority=args.certificate_authority,
            keep_context=args.keep_context,
            embed_certs=args.embed_certs,
        )
    )
    console.print(f"[green]Configured '{escape(args.name)}' in {path}[/green]")
    console.print(f"current-context: [bold]{escape(config.current_context)}[/bold]")
    return 0


def run_status(path: Path, args: argparse.Namespace) -> int:
    if get_kubeconfig_status(args.ip, path, args.name):
        console.print(f"[green]'{escape(args.name)}' points at {args.ip}[/green]")
        return 0
    console.print(f"[yellow]'{escape(args.name)}' does not point at {args.ip}[/yellow]")
    return 1


def run_update_ip(path: Path, args: argparse.Namespace) -> int:
    if get_kubeconfig_status(args.ip, path, args.name):
        console.print(f"[dim]'{escape(args.name)}' already points at {args.ip}, no changes made.[/dim]")
        return 0
    maybe_backup(path, args)
    update_kubeconfig_ip(args.ip, path, args.name)
    console.print(f"[green]Updated '{escape(args.name)}' to {args.ip}[/green]")
    return 0


def run_delete(path: Path, args: argparse.Namespace) -> int:
    maybe_backup(path, args)
    delete_kubeconfig_context(path, args.name)
    console.print(f"[green]Deleted '{escape(args.name)}' from {path}[/green]")
    return 0


COMMANDS = {
    "setup": run_setup,
    "status": run_status,
    "update-ip": run_update_ip,
    "delete": run_delete,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    path = Path(args.kubeconfig).expanduser() if args.kubeconfig else resolve_kubeconfig_path()
    logger.info(f"Using kubeconfig {path}")

    try:
        return COMMANDS[args.command](path, args)
    except KubeconfigError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 1
    except Exception as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        logger.exception("Unexpected error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
