"""Home, node and configuration paths, and atomic file writes."""

from __future__ import annotations

import enum
import json
import logging
import os
import sys
import tempfile
from typing import Any, Sequence

log = logging.getLogger("pathutil")


class ConfigPathError(LookupError):
    """Raised when a configuration path cannot be resolved."""


class ConfigLocationType(str, enum.Enum):
    """Where a configuration file is looked for."""

    WORKING_DIR = "WD"
    HOME = "HOME"
    LOCAL = "LOCAL"

    def __str__(self) -> str:
        return self.value


def all_config_location_types() -> list[ConfigLocationType]:
    """All valid config location types, in search order."""
    return [ConfigLocationType.WORKING_DIR, ConfigLocationType.HOME, ConfigLocationType.LOCAL]


class ConfigPaths(dict):
    """Configuration paths keyed by location type."""

    def __str__(self) -> str:
        return json.dumps({str(k): v for k, v in self.items()}, indent="\t")

    def get_path(self, cp_type: ConfigLocationType | str) -> str:
        try:
            return self[ConfigLocationType(cp_type)]
        except (KeyError, ValueError):
            valid = [str(t) for t in all_config_location_types()]
            raise ConfigPathError(
                f"invalid config type '{cp_type}' provided. Valid types: {valid}"
            ) from None


def home_dir() -> str:
    """The user's home directory, taken from the environment."""
    if sys.platform.startswith("win"):
        home = os.environ.get("HOMEDRIVE", "") + os.environ.get("HOMEPATH", "")
        return home or os.environ.get("USERPROFILE", "")
    return os.environ.get("HOME", "")


def node_dir(pk: Any) -> str:
    """Directory holding the state of the node with the given public key."""
    return os.path.join(home_dir(), ".skycoin", "skywire", str(pk))


def ensure_dir(path: str) -> None:
    """Create a directory (and parents) if it does not exist."""
    if not os.path.exists(path):
        os.makedirs(path, mode=0o750, exist_ok=True)


def atomic_write_file(filename: str, data: bytes) -> None:
    """Write data to a temporary file and rename it over the target."""
    directory, name = os.path.split(filename)
    fd, tmp_name = tempfile.mkstemp(prefix=name, dir=directory or ".")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, filename)
    except BaseException:
        try:
            os.remove(tmp_name)
        except OSError as exc:
            log.warning("Failed to remove file %s: %s", tmp_name, exc)
        raise


def atomic_append_to_file(filename: str, data: bytes) -> None:
    """Atomically replace an existing file with its content plus data."""
    with open(filename, "rb") as f:
        old = f.read()
    atomic_write_file(filename, old + data)


def node_defaults() -> ConfigPaths:
    """Default config paths of the visor."""
    paths = ConfigPaths()
    try:
        paths[ConfigLocationType.WORKING_DIR] = os.path.join(os.getcwd(), "skywire-config.json")
    except OSError:
        pass
    paths[ConfigLocationType.HOME] = os.path.join(
        home_dir(), ".skycoin/skywire/skywire-config.json"
    )
    paths[ConfigLocationType.LOCAL] = "/usr/local/SkycoinProject/skywire-mainnet/skywire-config.json"
    return paths


def hypervisor_defaults() -> ConfigPaths:
    """Default config paths of the hypervisor."""
    paths = ConfigPaths()
    try:
        paths[ConfigLocationType.WORKING_DIR] = os.path.join(os.getcwd(), "hypervisor-config.json")
    except OSError:
        pass
    paths[ConfigLocationType.HOME] = os.path.join(
        home_dir(), ".skycoin/hypervisor/hypervisor-config.json"
    )
    paths[ConfigLocationType.LOCAL] = "/usr/local/SkycoinProject/hypervisor/hypervisor-config.json"
    return paths


def find_config_path(
    args: Sequence[str], args_index: int, env: str, defaults: ConfigPaths
) -> str:
    """Find a config path from arguments, then an environment variable, then defaults.

    A negative args_index skips the argument lookup.
    """
    if 0 <= args_index < len(args):
        path = args[args_index]
        log.info("using args[%d] as config path: %s", args_index, path)
        return path
    if env and env in os.environ:
        path = os.environ[env]
        log.info("using $%s as config path: %s", env, path)
        return path
    log.debug("config path is not explicitly specified, trying default paths...")
    for i, cp_type in enumerate(all_config_location_types(), start=1):
        path = defaults.get(cp_type)
        if path is None:
            continue
        if os.path.exists(path):
            log.debug("- [%d/%d] '%s' is found", i, len(defaults), path)
            log.info("using fallback config path: %s", path)
            return path
        log.debug("- [%d/%d] '%s' cannot be accessed", i, len(defaults), path)
    raise ConfigPathError(f"config not found in any of the following paths: {defaults}")


def write_json_config(conf: Any, output: str, replace: bool) -> None:
    """Write a configuration as tab-indented JSON.

    Raises FileExistsError when the file exists and replace is false.
    """
    if hasattr(conf, "to_dict"):
        conf = conf.to_dict()
    raw = json.dumps(conf, indent="\t").encode()
    if not replace and os.path.exists(output):
        raise FileExistsError(
            f"file {output} already exists, stopping as 'replace,r' flag is not set"
        )
    parent = os.path.dirname(output)
    if parent:
        os.makedirs(parent, mode=0o750, exist_ok=True)
    with open(output, "wb") as f:
        f.write(raw)
    os.chmod(output, 0o744)
    log.info("Wrote %d bytes to %s\n%s", len(raw), output, raw.decode())