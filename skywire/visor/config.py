"""Visor configuration, its JSON form and the services derived from it."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from skywire.cipher import PubKey, SecKey
from skywire.transport.logstore import FileLogStore, InMemoryLogStore, LogStore

_NS_PER_SECOND = 1_000_000_000

_UNITS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": _NS_PER_SECOND,
    "m": 60 * _NS_PER_SECOND,
    "h": 3600 * _NS_PER_SECOND,
}

_COMPONENT = re.compile(r"(\d*)(\.\d*)?([^\d.]*)")


class ConfigError(ValueError):
    """Raised for invalid or incomplete configuration."""


def _fraction_text(value: int, digits: int) -> str:
    whole, rem = divmod(value, 10**digits)
    if not rem:
        return str(whole)
    return f"{whole}.{str(rem).zfill(digits).rstrip('0')}"


def format_duration(seconds: float) -> str:
    """Format a duration in seconds the way durations are written in config files."""
    ns = int((Decimal(repr(seconds)) * _NS_PER_SECOND).to_integral_value())
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u < _NS_PER_SECOND:
        if u < 1_000:
            return f"{sign}{u}ns"
        if u < 1_000_000:
            return f"{sign}{_fraction_text(u, 3)}\u00b5s"
        return f"{sign}{_fraction_text(u, 6)}ms"
    secs, frac = divmod(u, _NS_PER_SECOND)
    text = _fraction_text((secs % 60) * _NS_PER_SECOND + frac, 9) + "s"
    minutes = secs // 60
    if minutes:
        text = f"{minutes % 60}m{text}"
        hours = minutes // 60
        if hours:
            text = f"{hours}h{text}"
    return sign + text


def _parse_duration_text(text: str) -> float:
    orig = text
    negative = False
    if text and text[0] in "+-":
        negative = text[0] == "-"
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ConfigError(f'time: invalid duration "{orig}"')
    total = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _COMPONENT.match(text, pos)
        int_part, frac_part, unit = match.group(1), match.group(2) or "", match.group(3)
        if not int_part and len(frac_part) <= 1:
            raise ConfigError(f'time: invalid duration "{orig}"')
        if not unit:
            raise ConfigError(f'time: missing unit in duration "{orig}"')
        if unit not in _UNITS:
            raise ConfigError(f'time: unknown unit "{unit}" in duration "{orig}"')
        number = Decimal((int_part or "0") + "." + (frac_part[1:] or "0"))
        total += number * _UNITS[unit]
        pos = match.end()
    ns = int(total)
    return (-ns if negative else ns) / _NS_PER_SECOND


def parse_duration(value: Any) -> float:
    """Parse a duration given as a string ('10s', '1m30s') or as nanoseconds.

    Returns the duration in seconds.
    """
    if isinstance(value, bool):
        raise ConfigError("invalid duration")
    if isinstance(value, (int, float)):
        return int(value) / _NS_PER_SECOND
    if isinstance(value, str):
        try:
            return _parse_duration_text(value)
        except InvalidOperation as exc:
            raise ConfigError(f'time: invalid duration "{value}"') from exc
    raise ConfigError("invalid duration")


def ensure_dir(path: str) -> str:
    """Return the absolute form of path, creating the directory if missing."""
    abs_path = os.path.abspath(path)
    if os.path.exists(abs_path):
        return abs_path
    try:
        os.makedirs(abs_path, mode=0o750, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"failed to create dir: {exc}") from exc
    return abs_path


def _pk_text(pk: PubKey) -> str:
    return "" if pk.is_null() else pk.hex()


def _sk_text(sk: SecKey) -> str:
    return "" if sk.is_null() else sk.hex()


@dataclass
class AppConfig:
    """Startup parameters of an app."""

    app: str = ""
    version: str = ""
    auto_start: bool = False
    port: int = 0
    args: list[str] = field(default_factory=list)

    def _to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "app": self.app,
            "auto_start": self.auto_start,
            "port": self.port,
            "args": list(self.args),
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> AppConfig:
        return cls(
            app=data.get("app", ""),
            version=data.get("version", ""),
            auto_start=bool(data.get("auto_start", False)),
            port=int(data.get("port", 0)),
            args=list(data.get("args") or []),
        )


@dataclass
class HypervisorConfig:
    """A hypervisor to connect to."""

    pub_key: PubKey = field(default_factory=PubKey)
    addr: str = ""

    def _to_dict(self) -> dict[str, Any]:
        return {"public_key": _pk_text(self.pub_key), "address": self.addr}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> HypervisorConfig:
        return cls(PubKey.from_hex(data.get("public_key") or ""), data.get("address", ""))


@dataclass
class DmsgConfig:
    """Settings of the dmsg client."""

    pub_key: PubKey
    sec_key: SecKey
    discovery: str
    retries: int
    retry_delay: float


@dataclass
class DmsgPtyConfig:
    """Settings of the dmsgpty host."""

    port: int = 0
    auth_file: str = ""
    cli_net: str = ""
    cli_addr: str = ""

    def _to_dict(self) -> dict[str, Any]:
        return {
            "port": self.port,
            "authorization_file": self.auth_file,
            "cli_network": self.cli_net,
            "cli_address": self.cli_addr,
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> DmsgPtyConfig:
        return cls(
            port=int(data.get("port", 0)),
            auth_file=data.get("authorization_file", ""),
            cli_net=data.get("cli_network", ""),
            cli_addr=data.get("cli_address", ""),
        )


@dataclass
class InterfaceConfig:
    """Listening interfaces; an empty RPC address disables RPC."""

    rpc_address: str = ""


@dataclass
class Config:
    """Configuration of a visor node."""

    version: str = ""
    static_pub_key: PubKey = field(default_factory=PubKey)
    static_sec_key: SecKey = field(default_factory=SecKey)
    stcp_pk_table: dict[PubKey, str] = field(default_factory=dict)
    stcp_local_addr: str = ""
    messaging_discovery: str = ""
    messaging_server_count: int = 0
    dmsg_pty: Optional[DmsgPtyConfig] = None
    transport_discovery: str = ""
    log_store_type: str = ""
    log_store_location: str = ""
    setup_nodes: list[PubKey] = field(default_factory=list)
    route_finder: str = ""
    route_finder_timeout: float = 0.0
    routing_table_type: str = ""
    routing_table_location: str = ""
    uptime_tracker: str = ""
    apps: list[AppConfig] = field(default_factory=list)
    trusted_nodes: list[PubKey] = field(default_factory=list)
    hypervisors: list[HypervisorConfig] = field(default_factory=list)
    apps_path: str = ""
    local_path: str = ""
    log_level: str = ""
    shutdown_timeout: float = 0.0
    interfaces: InterfaceConfig = field(default_factory=InterfaceConfig)

    def messaging_config(self) -> DmsgConfig:
        """Settings for the dmsg client."""
        if not self.messaging_discovery:
            raise ConfigError("empty discovery")
        return DmsgConfig(
            pub_key=self.static_pub_key,
            sec_key=self.static_sec_key,
            discovery=self.messaging_discovery,
            retries=5,
            retry_delay=1.0,
        )

    def transport_log_store(self) -> LogStore:
        """A file log store when the type is 'file', an in-memory one otherwise."""
        if self.log_store_type == "file":
            return FileLogStore(self.log_store_location)
        return InMemoryLogStore()

    def apps_config(self) -> list[AppConfig]:
        """The app configurations, with the config version filled in where missing."""
        return [
            replace(app, version=app.version or self.version, args=list(app.args))
            for app in self.apps
        ]

    def apps_dir(self) -> str:
        """Absolute directory of the app binaries, created if needed."""
        if not self.apps_path:
            raise ConfigError("empty AppsPath")
        return ensure_dir(self.apps_path)

    def local_dir(self) -> str:
        """Absolute work directory of the apps, created if needed."""
        if not self.local_path:
            raise ConfigError("empty AppsPath")
        return ensure_dir(self.local_path)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.version,
            "node": {
                "static_public_key": _pk_text(self.static_pub_key),
                "static_secret_key": _sk_text(self.static_sec_key),
            },
            "stcp": {
                "pk_table": {_pk_text(pk): addr for pk, addr in self.stcp_pk_table.items()},
                "local_address": self.stcp_local_addr,
            },
            "messaging": {
                "discovery": self.messaging_discovery,
                "server_count": self.messaging_server_count,
            },
        }
        if self.dmsg_pty is not None:
            data["dmsg_pty"] = self.dmsg_pty._to_dict()
        data.update(
            {
                "transport": {
                    "discovery": self.transport_discovery,
                    "log_store": {
                        "type": self.log_store_type,
                        "location": self.log_store_location,
                    },
                },
                "routing": {
                    "setup_nodes": [_pk_text(pk) for pk in self.setup_nodes],
                    "route_finder": self.route_finder,
                    "route_finder_timeout": format_duration(self.route_finder_timeout),
                    "table": {
                        "type": self.routing_table_type,
                        "location": self.routing_table_location,
                    },
                },
                "uptime": {"tracker": self.uptime_tracker},
                "apps": [app._to_dict() for app in self.apps],
                "trusted_nodes": [_pk_text(pk) for pk in self.trusted_nodes],
                "hypervisors": [hv._to_dict() for hv in self.hypervisors],
                "apps_path": self.apps_path,
                "local_path": self.local_path,
                "log_level": self.log_level,
                "shutdown_timeout": format_duration(self.shutdown_timeout),
                "interfaces": {"rpc": self.interfaces.rpc_address},
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        node = data.get("node") or {}
        stcp = data.get("stcp") or {}
        messaging = data.get("messaging") or {}
        transport = data.get("transport") or {}
        log_store = transport.get("log_store") or {}
        routing = data.get("routing") or {}
        table = routing.get("table") or {}
        pty = data.get("dmsg_pty")
        return cls(
            version=data.get("version", ""),
            static_pub_key=PubKey.from_hex(node.get("static_public_key") or ""),
            static_sec_key=SecKey.from_hex(node.get("static_secret_key") or ""),
            stcp_pk_table={
                PubKey.from_hex(pk): addr for pk, addr in (stcp.get("pk_table") or {}).items()
            },
            stcp_local_addr=stcp.get("local_address", ""),
            messaging_discovery=messaging.get("discovery", ""),
            messaging_server_count=int(messaging.get("server_count", 0)),
            dmsg_pty=DmsgPtyConfig._from_dict(pty) if pty is not None else None,
            transport_discovery=transport.get("discovery", ""),
            log_store_type=log_store.get("type", ""),
            log_store_location=log_store.get("location", ""),
            setup_nodes=[PubKey.from_hex(pk) for pk in routing.get("setup_nodes") or []],
            route_finder=routing.get("route_finder", ""),
            route_finder_timeout=(
                parse_duration(routing["route_finder_timeout"])
                if "route_finder_timeout" in routing
                else 0.0
            ),
            routing_table_type=table.get("type", ""),
            routing_table_location=table.get("location", ""),
            uptime_tracker=(data.get("uptime") or {}).get("tracker", ""),
            apps=[AppConfig._from_dict(app) for app in data.get("apps") or []],
            trusted_nodes=[PubKey.from_hex(pk) for pk in data.get("trusted_nodes") or []],
            hypervisors=[HypervisorConfig._from_dict(hv) for hv in data.get("hypervisors") or []],
            apps_path=data.get("apps_path", ""),
            local_path=data.get("local_path", ""),
            log_level=data.get("log_level", ""),
            shutdown_timeout=(
                parse_duration(data["shutdown_timeout"]) if "shutdown_timeout" in data else 0.0
            ),
            interfaces=InterfaceConfig((data.get("interfaces") or {}).get("rpc", "")),
        )