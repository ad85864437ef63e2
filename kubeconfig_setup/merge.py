"""Merge a cluster, user and context into a kubeconfig file."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar
from urllib.parse import SplitResult, urlsplit

from kubeconfig_setup.api import AuthInfo, Cluster, Config, Context
from kubeconfig_setup.errors import ConfigError
from kubeconfig_setup.kubeconfig import read_config_or_new, write_config

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class KubeConfigSetup:
    """Parameters for one ``setup_kubeconfig`` call.

    The same name is used for the cluster, the user and the context.
    """

    kubeconfig_file: str | Path
    cluster_name: str
    cluster_server_address: str
    client_certificate: str = ""
    client_key: str = ""
    certificate_authority: str = ""
    keep_context: bool = False
    embed_certs: bool = False


def _read_cert(path: str) -> bytes:
    try:
        return Path(path).expanduser().read_bytes()
    except OSError as exc:
        raise ConfigError(f"cannot read certificate file {path}: {exc}") from exc


def new_cluster(server: str, certificate_authority: str = "", embed_certs: bool = False) -> Cluster:
    cluster = Cluster(server=server)
    if embed_certs and certificate_authority:
        cluster.certificate_authority_data = _read_cert(certificate_authority)
    else:
        cluster.certificate_authority = certificate_authority
    return cluster


def new_auth_info(
    client_certificate: str = "",
    client_key: str = "",
    embed_certs: bool = False,
) -> AuthInfo:
    auth_info = AuthInfo()
    if embed_certs:
        if client_certificate:
            auth_info.client_certificate_data = _read_cert(client_certificate)
        if client_key:
            auth_info.client_key_data = _read_cert(client_key)
    else:
        auth_info.client_certificate = client_certificate
        auth_info.client_key = client_key
    return auth_info


def new_context(cluster: str, auth_info: str, namespace: str = "") -> Context:
    return Context(cluster=cluster, auth_info=auth_info, namespace=namespace)


def _set_entry(entries: dict[str, T], kind: str, name: str, record: T) -> bool:
    replaced = name in entries
    if replaced:
        logger.info(f"Replacing {kind} '{name}'")
    else:
        logger.info(f"Adding {kind} '{name}'")
    entries[name] = record
    return replaced


def set_cluster(config: Config, name: str, cluster: Cluster) -> bool:
    """Insert or overwrite a cluster. Returns True if an entry was replaced."""
    return _set_entry(config.clusters, "cluster", name, cluster)


def set_auth_info(config: Config, name: str, auth_info: AuthInfo) -> bool:
    """Insert or overwrite a user. Returns True if an entry was replaced."""
    return _set_entry(config.auth_infos, "user", name, auth_info)


def set_context(config: Config, name: str, context: Context) -> bool:
    """Insert or overwrite a context. Returns True if an entry was replaced."""
    return _set_entry(config.contexts, "context", name, context)


def apply_context_policy(config: Config, name: str, keep_context: bool) -> bool:
    """
    Point current-context at ``name`` unless the caller asked to keep an
    already selected context.

    Returns:
        True if current-context was set to ``name``
    """
    if keep_context and config.current_context:
        logger.info(f"Keeping current context '{config.current_context}'")
        return False
    config.current_context = name
    logger.info(f"Switched current context to '{name}'")
    return True


def setup_kubeconfig(setup: KubeConfigSetup) -> Config:
    """
    Merge the cluster, user and context described by ``setup`` into its
    kubeconfig file and write the result back.

    Entries with the same name are replaced whole; every other entry and
    top-level field is preserved. The file is only touched by the final
    atomic write.

    Returns:
        The merged configuration as written
    """
    name = setup.cluster_name
    if not name or not name.strip():
        raise ConfigError("cluster name must not be empty")
    if not setup.cluster_server_address:
        raise ConfigError(f"server address for cluster '{name}' must not be empty")

    config = read_config_or_new(setup.kubeconfig_file)

    cluster = new_cluster(
        setup.cluster_server_address,
        setup.certificate_authority,
        embed_certs=setup.embed_certs,
    )
    auth_info = new_auth_info(
        setup.client_certificate,
        setup.client_key,
        embed_certs=setup.embed_certs,
    )

    set_cluster(config, name, cluster)
    set_auth_info(config, name, auth_info)
    set_context(config, name, new_context(name, name))
    apply_context_policy(config, name, setup.keep_context)

    write_config(config, setup.kubeconfig_file)
    return config


def _read_existing(path: str | Path) -> Config:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"kubeconfig not found: {path}")
    return read_config_or_new(path)


def _lookup_cluster(config: Config, name: str, path: str | Path) -> Cluster:
    cluster = config.clusters.get(name)
    if cluster is None:
        raise ConfigError(f"cluster '{name}' not found in kubeconfig {path}")
    return cluster


def _split_server(server: str) -> tuple[SplitResult, bool]:
    has_scheme = "://" in server
    return urlsplit(server if has_scheme else f"//{server}"), has_scheme


def server_host(server: str) -> str:
    """Host part of a server address given as a URL or as host:port."""
    parsed, _ = _split_server(server)
    return parsed.hostname or ""


def _same_host(a: str, b: str) -> bool:
    try:
        return ipaddress.ip_address(a) == ipaddress.ip_address(b)
    except ValueError:
        return a.lower() == b.lower()


def replace_server_host(server: str, host: str) -> str:
    """Swap the host of ``server`` for ``host``, keeping scheme, port and path."""
    parsed, has_scheme = _split_server(server)
    try:
        port = parsed.port
    except ValueError as exc:
        raise ConfigError(f"invalid server address: {server}") from exc

    netloc = f"[{host}]" if ":" in host else host
    if port is not None:
        netloc = f"{netloc}:{port}"
    rebuilt = parsed._replace(netloc=netloc).geturl()
    return rebuilt if has_scheme else rebuilt[2:]


def get_kubeconfig_status(ip: str, path: str | Path, name: str) -> bool:
    """Return True if cluster ``name`` already points at ``ip``."""
    config = _read_existing(path)
    cluster = _lookup_cluster(config, name, path)
    return _same_host(server_host(cluster.server), ip)


def update_kubeconfig_ip(ip: str, path: str | Path, name: str) -> bool:
    """
    Point cluster ``name`` at ``ip``.

    Returns:
        True if the file was rewritten, False if it was already correct
    """
    config = _read_existing(path)
    cluster = _lookup_cluster(config, name, path)
    if _same_host(server_host(cluster.server), ip):
        logger.info(f"Cluster '{name}' already points at {ip}")
        return False

    updated = replace_server_host(cluster.server, ip)
    logger.info(f"Updating cluster '{name}' server: {cluster.server} -> {updated}")
    cluster.server = updated
    write_config(config, path)
    return True


def delete_kubeconfig_context(path: str | Path, name: str) -> None:
    """Remove the cluster, user and context called ``name``."""
    config = _read_existing(path)

    removed = [
        kind
        for kind, entries in (
            ("cluster", config.clusters),
            ("user", config.auth_infos),
            ("context", config.contexts),
        )
        if entries.pop(name, None) is not None
    ]
    if not removed and config.current_context != name:
        logger.warning(f"No entries named '{name}' in {path}")
        return
    if removed:
        logger.info(f"Removed {', '.join(removed)} '{name}'")

    if config.current_context == name:
        config.current_context = ""

    write_config(config, path)
