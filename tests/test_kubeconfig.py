"""Tests for reading and writing kubeconfig files."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest
import yaml

from kubeconfig_setup import kubeconfig
from kubeconfig_setup.api import AuthInfo, Cluster, Config, Context
from kubeconfig_setup.errors import ConfigError, ParseError, WriteError
from kubeconfig_setup.kubeconfig import backup_file, read_config_or_new, write_config

HAND_EDITED_KUBECONFIG = """\
apiVersion: v1
kind: Config
preferences:
  colors: true
current-context: prod
clusters:
- name: lab
  cluster:
    server: https://10.0.0.2:6443
    insecure-skip-tls-verify: false
    extensions: []
- name: placeholder
- name: prod
  cluster:
    server: https://10.0.0.1:6443
    certificate-authority-data: Y2EtYnl0ZXM=
    disable-compression: true
    extensions:
    - name: client.authentication.k8s.io/exec
      extension:
        audience: prod
users:
- name: prod
  user:
    exec:
      apiVersion: client.authentication.k8s.io/v1beta1
      command: aws
      args: [eks, get-token, --cluster-name, prod]
contexts:
- name: prod
  x-owner: team-a
  context:
    cluster: prod
    user: prod
    namespace: payments
extensions:
- name: tool
  extension:
    last-update: "2024-01-01"
"""


def minikube_config() -> Config:
    config = Config()
    config.clusters["minikube"] = Cluster(
        server="https://192.168.99.100:8443",
        certificate_authority="/home/tux/.minikube/apiserver.crt",
    )
    config.auth_infos["minikube"] = AuthInfo(
        client_certificate="/home/tux/.minikube/apiserver.crt",
        client_key="/home/tux/.minikube/apiserver.key",
    )
    config.contexts["minikube"] = Context(cluster="minikube", auth_info="minikube")
    config.current_context = "minikube"
    return config


def assert_empty(config: Config) -> None:
    assert config.clusters == {}
    assert config.auth_infos == {}
    assert config.contexts == {}
    assert config.current_context == ""
    assert config.kind == "Config"
    assert config.api_version == "v1"


def test_missing_file_returns_empty_config(tmp_path):
    assert_empty(read_config_or_new(tmp_path / "does-not-exist"))


@pytest.mark.parametrize("content", ["", "   \n\n", "# nothing here yet\n"])
def test_blank_file_returns_empty_config(tmp_path, content):
    path = tmp_path / "kubeconfig"
    path.write_text(content)

    assert_empty(read_config_or_new(path))


def test_reads_existing_config(la_croix_kubeconfig):
    config = read_config_or_new(la_croix_kubeconfig)

    assert list(config.clusters) == ["la-croix"]
    assert config.clusters["la-croix"].server == "192.168.1.1:8080"
    assert config.clusters["la-croix"].location_of_origin == str(la_croix_kubeconfig)
    assert config.auth_infos["la-croix"].client_key == "/home/la-croix/apiserver.key"
    assert config.contexts["la-croix"].auth_info == "la-croix"
    assert config.current_context == "la-croix"


@pytest.mark.parametrize(
    "content",
    [
        "clusters: [\n",
        "- just\n- a\n- list\n",
        "clusters:\n- cluster:\n    server: https://x\n",
        "clusters: not-a-list\n",
        "clusters:\n- name: c1\n  cluster:\n    server: 6443\n",
        "clusters:\n- name: c1\n  cluster:\n    certificate-authority-data: '!!!'\n",
        "current-context: [a, b]\n",
        "preferences: [1]\n",
    ],
)
def test_malformed_file_raises_parse_error(tmp_path, content):
    path = tmp_path / "kubeconfig"
    path.write_text(content)

    with pytest.raises(ParseError):
        read_config_or_new(path)


def test_duplicate_names_last_wins(tmp_path, caplog):
    path = tmp_path / "kubeconfig"
    path.write_text(
        "clusters:\n"
        "- name: c1\n  cluster:\n    server: https://a\n"
        "- name: c1\n  cluster:\n    server: https://b\n"
    )

    config = read_config_or_new(path)

    assert config.clusters["c1"].server == "https://b"
    assert "Duplicate entry 'c1'" in caplog.text


def test_directory_path_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        read_config_or_new(tmp_path)
    with pytest.raises(ConfigError):
        write_config(Config(), tmp_path)


def test_write_then_read_round_trip(kubeconfig_path):
    expected = minikube_config()

    write_config(expected, kubeconfig_path)
    actual = read_config_or_new(kubeconfig_path)

    assert actual == expected


def test_round_trip_keeps_data_fields_and_extensions(kubeconfig_path):
    expected = minikube_config()
    expected.clusters["minikube"].certificate_authority_data = b"-----BEGIN CERTIFICATE-----\n"
    expected.clusters["minikube"].extensions = [
        {"name": "cluster_info", "extension": {"provider": "minikube.sigs.k8s.io"}}
    ]
    expected.auth_infos["token-user"] = AuthInfo(token="abc123", username="admin", password="pw")
    expected.contexts["kube-system"] = Context(
        cluster="minikube", auth_info="token-user", namespace="kube-system"
    )
    expected.preferences = {"colors": True}
    expected.extensions = [{"name": "tool", "extension": {"managed": "yes"}}]
    expected.extra = {"x-tool-owner": "platform"}

    write_config(expected, kubeconfig_path)
    actual = read_config_or_new(kubeconfig_path)

    assert actual == expected
    assert len(actual.extensions) == 1
    assert len(actual.clusters["minikube"].extensions) == 1


def test_untouched_fields_survive_rewrite(tmp_path):
    path = tmp_path / "kubeconfig"
    path.write_text(HAND_EDITED_KUBECONFIG)

    write_config(read_config_or_new(path), path)

    assert yaml.safe_load(path.read_text()) == yaml.safe_load(HAND_EDITED_KUBECONFIG)


def test_write_orders_keys_deterministically(kubeconfig_path):
    config = minikube_config()
    config.clusters["a-cluster"] = Cluster(server="https://10.0.0.9:6443")

    write_config(config, kubeconfig_path)
    first = kubeconfig_path.read_text()
    write_config(read_config_or_new(kubeconfig_path), kubeconfig_path)
    data = yaml.safe_load(kubeconfig_path.read_text())

    assert kubeconfig_path.read_text() == first
    assert first.startswith("apiVersion: v1\n")
    assert list(data) == [
        "apiVersion",
        "clusters",
        "contexts",
        "current-context",
        "kind",
        "preferences",
        "users",
    ]
    assert [item["name"] for item in data["clusters"]] == ["a-cluster", "minikube"]


def test_write_follows_symlinked_kubeconfig(tmp_path):
    target = tmp_path / "dotfiles" / "kubeconfig"
    target.parent.mkdir()
    target.write_text("current-context: other\n")
    link = tmp_path / "config"
    link.symlink_to(target)

    write_config(minikube_config(), link)

    assert link.is_symlink()
    assert link.resolve() == target.resolve()
    assert read_config_or_new(target) == minikube_config()
    assert sorted(os.listdir(target.parent)) == ["kubeconfig"]


def test_write_sets_owner_only_permissions(kubeconfig_path):
    write_config(minikube_config(), kubeconfig_path)

    assert stat.S_IMODE(kubeconfig_path.stat().st_mode) == 0o600


def test_write_creates_missing_parent_dirs(tmp_path):
    path = tmp_path / "nested" / "dir" / "config"

    write_config(minikube_config(), path)

    assert path.is_file()


def test_failed_replace_leaves_original_file(la_croix_kubeconfig, monkeypatch):
    original = la_croix_kubeconfig.read_text()

    def _fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(kubeconfig.os, "replace", _fail_replace)

    with pytest.raises(WriteError, match="disk full"):
        write_config(minikube_config(), la_croix_kubeconfig)

    assert la_croix_kubeconfig.read_text() == original
    assert os.listdir(la_croix_kubeconfig.parent) == [la_croix_kubeconfig.name]


def test_unserializable_config_raises_write_error(kubeconfig_path):
    config = minikube_config()
    config.extra = {"bad": object()}

    with pytest.raises(WriteError):
        write_config(config, kubeconfig_path)

    assert not kubeconfig_path.exists()


def test_backup_file_copies_into_backup_dir(la_croix_kubeconfig, tmp_path):
    backup_dir = tmp_path / "backups"

    backup_path = backup_file(la_croix_kubeconfig, backup_dir)

    assert backup_path.parent == backup_dir
    assert backup_path.name.startswith("kubeconfig.bak.")
    assert backup_path.read_text() == la_croix_kubeconfig.read_text()


def test_write_error_when_parent_is_a_file(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")

    with pytest.raises(WriteError):
        write_config(minikube_config(), Path(blocker, "config"))
