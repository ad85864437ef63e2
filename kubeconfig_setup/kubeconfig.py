from __future__ import annotations

import contextlib
import datetime as dt
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

import yaml

from kubeconfig_setup.api import Config
from kubeconfig_setup.errors import ConfigError, ParseError, WriteError

logger = logging.getLogger(__name__)

DEFAULT_KUBE_DIR = Path.home() / ".kube"
DEFAULT_BACKUP_DIR = DEFAULT_KUBE_DIR / "config_backup"
DEFAULT_KUBECONFIG = DEFAULT_KUBE_DIR / "config"

CONFIG_FILE_MODE = 0o600


def load_yaml(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ParseError(f"failed to parse kubeconfig {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"kubeconfig is not valid UTF-8: {path}") from exc


def dump_yaml(data: dict[str, Any]) -> str:
    return yaml.safe_dump(
        data,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def atomic_write(path: Path, content: str, mode: int = CONFIG_FILE_MODE) -> None:
    """Replace ``path`` with ``content`` in a single rename.

    The data is written to a sibling temporary file first, so a failure at any
    point leaves the previous file untouched.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def backup_file(path: Path, backup_dir: Path = DEFAULT_BACKUP_DIR) -> Path:
    backup_dir.mkdir(parents=True, exist_ok=True)
    timestamp = dt.datetime.now().strftime("%Y%m%d%H%M%S")
    backup_path = backup_dir / f"{path.name}.bak.{timestamp}"
    shutil.copy2(path, backup_path)
    logger.info(f"Backup created at {backup_path}")
    return backup_path


def read_config_or_new(path: str | Path) -> Config:
    """
    Load the kubeconfig at ``path``.

    A missing, empty or comment-only file yields an empty ``Config``.

    Raises:
        ParseError: the file exists but is not a valid kubeconfig
        ConfigError: the path is a directory or cannot be read
    """
    path = Path(path)
    if path.is_dir():
        raise ConfigError(f"kubeconfig path is a directory: {path}")

    try:
        data = load_yaml(path)
    except FileNotFoundError:
        logger.info(f"Kubeconfig not found at {path}, starting from an empty config")
        return Config()
    except OSError as exc:
        raise ConfigError(f"cannot read kubeconfig {path}: {exc}") from exc

    if data is None:
        logger.info(f"Kubeconfig {path} is empty, starting from an empty config")
        return Config()
    return Config.from_dict(data, origin=str(path))


def write_config(config: Config, path: str | Path) -> None:
    """
    Serialize ``config`` and atomically replace the file at ``path``.

    The file is created with owner-only permissions and missing parent
    directories are created. A symlinked ``path`` is followed so the link
    stays in place and its target receives the new content. Concurrent
    writers are not coordinated: the last rename wins.

    Raises:
        WriteError: serialization or any filesystem step failed
        ConfigError: the path is a directory
    """
    path = Path(path).resolve()
    if path.is_dir():
        raise ConfigError(f"kubeconfig path is a directory: {path}")

    try:
        content = dump_yaml(config.to_dict())
    except yaml.YAMLError as exc:
        raise WriteError(f"failed to serialize kubeconfig for {path}: {exc}") from exc

    try:
        ensure_parent_dir(path)
        atomic_write(path, content)
    except OSError as exc:
        raise WriteError(f"failed to write kubeconfig {path}: {exc}") from exc

    logger.info(f"Wrote kubeconfig {path}")
