from __future__ import annotations

import ipaddress
import os
import socket
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from dotenv import load_dotenv

from shared.errors import ConfigError
from shared.logging.logger import get_logger

log = get_logger("shared.config.audit")

DEFAULT_CACHE_SIZE = 1000
DEFAULT_LOG_LEVEL = "INFO"
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

_BOT_PREFIX = "Bot "

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class AuditConfig:
    discord_token: str = ""
    is_bot: bool = False
    graylog_address: str = ""
    cache_size: int = DEFAULT_CACHE_SIZE
    log_level: str = DEFAULT_LOG_LEVEL
    stdout_enabled: bool = True

    def validate(self) -> "AuditConfig":
        """
        Check required settings and normalize them.

        Returns a new config with the token prefix normalized and the
        graylog host resolved to an address (IPv4 preferred).
        """
        if not self.discord_token:
            raise ConfigError("discord token is empty")

        token = _strip_bot_prefix(self.discord_token)
        if not token:
            raise ConfigError("discord token is empty")
        if self.is_bot:
            token = f"{_BOT_PREFIX}{token}"

        address = resolve_address(self.graylog_address)

        return replace(self, discord_token=token, graylog_address=address)

    @property
    def gateway_token(self) -> str:
        """
        Token as discord.py expects it (no "Bot " prefix).
        """
        return _strip_bot_prefix(self.discord_token)

    @property
    def graylog_host(self) -> str:
        host, _ = split_host_port(self.graylog_address)
        return host

    @property
    def graylog_port(self) -> int:
        _, port = split_host_port(self.graylog_address)
        return port


# ----------------------------------------------------------------------
# Address helpers
# ----------------------------------------------------------------------

def _strip_bot_prefix(token: str) -> str:
    token = token.strip()
    while token.startswith(_BOT_PREFIX):
        token = token[len(_BOT_PREFIX):].lstrip()
    return token


def split_host_port(address: str) -> tuple[str, int]:
    if not address or ":" not in address:
        raise ConfigError(f"invalid address, expected host:port: {address}")

    host, _, port_raw = address.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    if not host:
        raise ConfigError(f"invalid address, expected host:port: {address}")

    try:
        port = int(port_raw)
    except ValueError:
        raise ConfigError(f"invalid port in address: {address}") from None

    if not 0 < port < 65536:
        raise ConfigError(f"port out of range in address: {address}")

    return host, port


def join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def resolve_address(address: str) -> str:
    """
    Resolve host:port to ip:port, selecting an IPv4 address when one exists.
    """
    host, port = split_host_port(address)

    try:
        infos = socket.getaddrinfo(host, port, proto=socket.IPPROTO_UDP)
    except socket.gaierror as e:
        raise ConfigError(f"failed to resolve host: {host}: {e}") from e

    selected: Optional[ipaddress.IPv4Address | ipaddress.IPv6Address] = None
    for info in infos:
        raw_ip = info[4][0]
        try:
            addr = ipaddress.ip_address(raw_ip.split("%", 1)[0])
        except ValueError as e:
            raise ConfigError(f"failed to parse resolved address: {raw_ip}: {e}") from e

        if addr.version == 6 and addr.ipv4_mapped is not None:
            addr = addr.ipv4_mapped

        if selected is None:
            selected = addr
            if selected.version == 4:
                break
        elif addr.version == 4:
            selected = addr
            break

    if selected is None:
        raise ConfigError(f"could not select any resolved address for {host}")

    resolved = join_host_port(str(selected), port)
    log.debug(f"Resolved graylog address {address} -> {resolved}")
    return resolved


# ----------------------------------------------------------------------
# Loading
# ----------------------------------------------------------------------

def _load_bool(raw: Optional[str], name: str, default: bool) -> bool:
    if raw is None or raw == "":
        return default

    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False

    log.warning(f"{name} must be boolean; defaulting to {str(default).lower()}")
    return default


def _load_cache_size(raw: Optional[str]) -> int:
    if raw is None or raw == "":
        return DEFAULT_CACHE_SIZE

    try:
        size = int(raw)
    except ValueError:
        log.warning(f"AUDIT_CACHE_SIZE is not an integer ({raw!r}); using {DEFAULT_CACHE_SIZE}")
        return DEFAULT_CACHE_SIZE

    if size < 0:
        log.warning(f"AUDIT_CACHE_SIZE must not be negative; using {DEFAULT_CACHE_SIZE}")
        return DEFAULT_CACHE_SIZE

    return size


def _load_log_level(raw: Optional[str]) -> str:
    if not raw:
        return DEFAULT_LOG_LEVEL

    level = raw.strip().upper()
    if level not in VALID_LOG_LEVELS:
        log.warning(f"AUDIT_LOG_LEVEL {raw!r} is not valid; using {DEFAULT_LOG_LEVEL}")
        return DEFAULT_LOG_LEVEL

    return level


def load_audit_config(
    environ: Optional[Mapping[str, str]] = None,
    *,
    use_dotenv: bool = True,
) -> AuditConfig:
    """
    Build the config from the environment (and .env when present).

    Validation is a separate step so command-line overrides can be applied
    in between.
    """
    if environ is None:
        if use_dotenv:
            load_dotenv()
        environ = os.environ

    return AuditConfig(
        discord_token=environ.get("DISCORD_TOKEN", ""),
        is_bot=_load_bool(environ.get("DISCORD_IS_BOT"), "DISCORD_IS_BOT", False),
        graylog_address=environ.get("GRAYLOG_ADDRESS", ""),
        cache_size=_load_cache_size(environ.get("AUDIT_CACHE_SIZE")),
        log_level=_load_log_level(environ.get("AUDIT_LOG_LEVEL")),
        stdout_enabled=_load_bool(environ.get("AUDIT_STDOUT"), "AUDIT_STDOUT", True),
    )


__all__ = [
    "AuditConfig",
    "DEFAULT_CACHE_SIZE",
    "load_audit_config",
    "resolve_address",
    "split_host_port",
    "join_host_port",
]
