from pathlib import Path

import pytest

LA_CROIX_KUBECONFIG = """\
apiVersion: v1
clusters:
- cluster:
    certificate-authority: /home/la-croix/apiserver.crt
    server: 192.168.1.1:8080
  name: la-croix
contexts:
- context:
    cluster: la-croix
    user: la-croix
  name: la-croix
current-context: la-croix
kind: Config
preferences: {}
users:
- name: la-croix
  user:
    client-certificate: /home/la-croix/apiserver.crt
    client-key: /home/la-croix/apiserver.key
"""


@pytest.fixture
def kubeconfig_path(tmp_path: Path) -> Path:
    return tmp_path / ".kube" / "config"


@pytest.fixture
def la_croix_kubeconfig(tmp_path: Path) -> Path:
    path = tmp_path / "kubeconfig"
    path.write_text(LA_CROIX_KUBECONFIG)
    return path
