"""In-memory kubeconfig model and its conversion to the v1 wire document."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeVar

from kubeconfig_setup.errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_KIND = "Config"
DEFAULT_API_VERSION = "v1"

# (attribute, wire key, python type)
FieldSpec = tuple[str, str, type]

R = TypeVar("R", bound="_Record")


def _decode_value(value: Any, kind: type, where: str) -> Any:
    if kind is bytes:
        if not isinstance(value, str):
            raise ParseError(f"{where} must be a base64 string, got {type(value).__name__}")
        try:
            return base64.b64decode("".join(value.split()), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ParseError(f"{where} is not valid base64") from exc
    if not isinstance(value, kind):
        raise ParseError(f"{where} must be a {kind.__name__}, got {type(value).__name__}")
    return value


def _encode_value(value: Any, kind: type) -> Any:
    if kind is bytes:
        return base64.b64encode(value).decode("ascii")
    return value


def _decode_extensions(value: Any, where: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ParseError(f"{where}.extensions must be a list of mappings")
    return list(value)


def _sorted_mapping(data: dict[Any, Any]) -> dict[Any, Any]:
    return dict(sorted(data.items(), key=lambda item: str(item[0])))


class _Record:
    """Shared wire conversion for Cluster, AuthInfo and Context."""

    _fields: ClassVar[tuple[FieldSpec, ...]] = ()
    _required: ClassVar[tuple[str, ...]] = ()

    extensions: list[dict[str, Any]]
    extra: dict[str, Any]
    entry_extra: dict[str, Any]
    source_keys: frozenset[str] | None
    has_body: bool

    @classmethod
    def from_dict(cls: type[R], raw: Any, where: str, origin: str = "") -> R:
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ParseError(f"{where} must be a mapping, got {type(raw).__name__}")

        by_key = {wire: (attr, kind) for attr, wire, kind in cls._fields}
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in raw.items():
            if key == "extensions":
                values["extensions"] = _decode_extensions(value, where)
            elif key in by_key:
                attr, kind = by_key[key]
                if value is not None:
                    values[attr] = _decode_value(value, kind, f"{where}.{key}")
            else:
                extra[key] = value
        return cls(  # type: ignore[call-arg]
            **values,
            extra=extra,
            location_of_origin=origin,
            source_keys=frozenset(str(key) for key in raw),
        )

    def to_dict(self) -> dict[str, Any]:
        # records read from a file echo the keys they were written with
        keep = self._required if self.source_keys is None else self.source_keys
        out: dict[str, Any] = dict(self.extra)
        for attr, wire, kind in self._fields:
            value = getattr(self, attr)
            if value or wire in keep:
                out[wire] = _encode_value(value, kind)
        if self.extensions or "extensions" in keep:
            out["extensions"] = list(self.extensions)
        return _sorted_mapping(out)


@dataclass
class Cluster(_Record):
    """A control-plane endpoint and its trust anchor."""

    _fields: ClassVar[tuple[FieldSpec, ...]] = (
        ("server", "server", str),
        ("certificate_authority", "certificate-authority", str),
        ("certificate_authority_data", "certificate-authority-data", bytes),
        ("insecure_skip_tls_verify", "insecure-skip-tls-verify", bool),
        ("tls_server_name", "tls-server-name", str),
        ("proxy_url", "proxy-url", str),
    )
    _required: ClassVar[tuple[str, ...]] = ("server",)

    server: str = ""
    certificate_authority: str = ""
    certificate_authority_data: bytes = b""
    insecure_skip_tls_verify: bool = False
    tls_server_name: str = ""
    proxy_url: str = ""
    extensions: list[dict[str, Any]] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
    location_of_origin: str = field(default="", compare=False)
    entry_extra: dict[str, Any] = field(default_factory=dict)
    source_keys: frozenset[str] | None = field(default=None, compare=False, repr=False)
    has_body: bool = field(default=True, compare=False, repr=False)


@dataclass
class AuthInfo(_Record):
    """Client credentials. Any combination of the credential forms may be set."""

    _fields: ClassVar[tuple[FieldSpec, ...]] = (
        ("client_certificate", "client-certificate", str),
        ("client_certificate_data", "client-certificate-data", bytes),
        ("client_key", "client-key", str),
        ("client_key_data", "client-key-data", bytes),
        ("token", "token", str),
        ("token_file", "tokenFile", str),
        ("username", "username", str),
        ("password", "password", str),
    )

    client_certificate: str = ""
    client_certificate_data: bytes = b""
    client_key: str = ""
    client_key_data: bytes = b""
    token: str = ""
    token_file: str = ""
    username: str = ""
    password: str = ""
    extensions: list[dict[str, Any]] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
    location_of_origin: str = field(default="", compare=False)
    entry_extra: dict[str, Any] = field(default_factory=dict)
    source_keys: frozenset[str] | None = field(default=None, compare=False, repr=False)
    has_body: bool = field(default=True, compare=False, repr=False)


@dataclass
class Context(_Record):
    """Pairs a cluster name with a user name. References are not checked."""

    _fields: ClassVar[tuple[FieldSpec, ...]] = (
        ("cluster", "cluster", str),
        ("auth_info", "user", str),
        ("namespace", "namespace", str),
    )
    _required: ClassVar[tuple[str, ...]] = ("cluster", "user")

    cluster: str = ""
    auth_info: str = ""
    namespace: str = ""
    extensions: list[dict[str, Any]] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
    location_of_origin: str = field(default="", compare=False)
    entry_extra: dict[str, Any] = field(default_factory=dict)
    source_keys: frozenset[str] | None = field(default=None, compare=False, repr=False)
    has_body: bool = field(default=True, compare=False, repr=False)


def _decode_named_list(
    items: Any,
    key: str,
    inner_key: str,
    record_type: type[R],
    origin: str,
) -> dict[str, R]:
    if items is None:
        return {}
    if not isinstance(items, list):
        raise ParseError(f"'{key}' must be a list, got {type(items).__name__}")

    records: dict[str, R] = {}
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ParseError(f"{key}[{idx}] must be a mapping")
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ParseError(f"{key}[{idx}] has no name")
        if name in records:
            logger.warning(f"Duplicate entry '{name}' in {key} of {origin or 'kubeconfig'} (last wins)")
        record = record_type.from_dict(item.get(inner_key), f"{key}[{name}]", origin)
        record.entry_extra = {k: v for k, v in item.items() if k not in ("name", inner_key)}
        record.has_body = inner_key in item
        records[name] = record
    return records


def _encode_named_list(records: Mapping[str, _Record], inner_key: str) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for name, record in sorted(records.items()):
        item = dict(record.entry_extra)
        item["name"] = name
        body = record.to_dict()
        if body or record.has_body:
            item[inner_key] = body
        items.append(_sorted_mapping(item))
    return items


def _optional_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ParseError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


@dataclass
class Config:
    """A whole kubeconfig document keyed by entry name."""

    TOP_LEVEL_KEYS: ClassVar[frozenset[str]] = frozenset(
        (
            "apiVersion",
            "clusters",
            "contexts",
            "current-context",
            "extensions",
            "kind",
            "preferences",
            "users",
        )
    )

    clusters: dict[str, Cluster] = field(default_factory=dict)
    auth_infos: dict[str, AuthInfo] = field(default_factory=dict)
    contexts: dict[str, Context] = field(default_factory=dict)
    current_context: str = ""
    kind: str = DEFAULT_KIND
    api_version: str = DEFAULT_API_VERSION
    preferences: dict[str, Any] = field(default_factory=dict)
    extensions: list[dict[str, Any]] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.clusters or self.auth_infos or self.contexts)

    @classmethod
    def from_dict(cls, data: Any, origin: str = "") -> Config:
        if not isinstance(data, dict):
            raise ParseError(f"kubeconfig root must be a mapping (dict): {origin}")

        preferences = data.get("preferences")
        if preferences is None:
            preferences = {}
        if not isinstance(preferences, dict):
            raise ParseError("'preferences' must be a mapping")

        return cls(
            clusters=_decode_named_list(data.get("clusters"), "clusters", "cluster", Cluster, origin),
            auth_infos=_decode_named_list(data.get("users"), "users", "user", AuthInfo, origin),
            contexts=_decode_named_list(data.get("contexts"), "contexts", "context", Context, origin),
            current_context=_optional_str(data, "current-context"),
            kind=_optional_str(data, "kind") or DEFAULT_KIND,
            api_version=_optional_str(data, "apiVersion") or DEFAULT_API_VERSION,
            preferences=dict(preferences),
            extensions=_decode_extensions(data.get("extensions"), "config"),
            extra={k: v for k, v in data.items() if k not in cls.TOP_LEVEL_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out.update(
            {
                "apiVersion": self.api_version or DEFAULT_API_VERSION,
                "clusters": _encode_named_list(self.clusters, "cluster"),
                "contexts": _encode_named_list(self.contexts, "context"),
                "current-context": self.current_context,
                "kind": self.kind or DEFAULT_KIND,
                "preferences": dict(self.preferences),
                "users": _encode_named_list(self.auth_infos, "user"),
            }
        )
        if self.extensions:
            out["extensions"] = list(self.extensions)
        return _sorted_mapping(out)
