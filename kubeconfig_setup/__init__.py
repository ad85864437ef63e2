"""Create and merge cluster entries in a kubeconfig file."""

from kubeconfig_setup.api import AuthInfo, Cluster, Config, Context
from kubeconfig_setup.errors import ConfigError, KubeconfigError, ParseError, WriteError
from kubeconfig_setup.kubeconfig import read_config_or_new, write_config
from kubeconfig_setup.merge import KubeConfigSetup, apply_context_policy, setup_kubeconfig

__version__ = "1.0.0"

__all__ = [
    "AuthInfo",
    "Cluster",
    "Config",
    "ConfigError",
    "Context",
    "KubeConfigSetup",
    "KubeconfigError",
    "ParseError",
    "WriteError",
    "__version__",
    "apply_context_policy",
    "read_config_or_new",
    "setup_kubeconfig",
    "write_config",
]
