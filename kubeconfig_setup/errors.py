"""Exceptions raised by kubeconfig-setup."""


class KubeconfigError(Exception):
    """Base class for every error surfaced to callers."""


class ParseError(KubeconfigError):
    """An existing kubeconfig file could not be decoded."""


class WriteError(KubeconfigError):
    """The kubeconfig file could not be persisted."""


class ConfigError(KubeconfigError):
    """The request or the target path is unusable."""
