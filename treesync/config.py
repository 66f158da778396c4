"""Profile configuration: locations, loading, validation and serialization."""

from __future__ import annotations

import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from treesync import types
from treesync.exclusions import ExclusionRules
from treesync.ssh.transport import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PORT, ConnectionSettings

CONFIG_DIR_NAME = "treesync"
SUBDIRECTORIES: tuple[str, ...] = ("profiles", "logs")
EXCLUDE_KEYS: tuple[str, ...] = (
    "extensions_from_sync",
    "extensions_from_analysis",
    "folders_from_sync",
    "folders_from_analysis",
    "files_from_sync",
    "files_from_analysis",
)


def is_windows() -> bool:
    """Return True if running on Windows."""
    return os.name == "nt" or sys.platform.startswith("win")


def get_base_config_dir() -> Path:
    """Resolve the platform-specific configuration directory."""
    if is_windows():
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
        return base / CONFIG_DIR_NAME
    return Path.home() / ".config" / CONFIG_DIR_NAME


def ensure_config_structure(base_dir: Path | None = None, *, subdirs: Iterable[str] = SUBDIRECTORIES) -> Path:
    """Ensure that the config directory and expected subdirectories exist."""
    base = base_dir or get_base_config_dir()
    base.mkdir(parents=True, exist_ok=True)
    for name in subdirs:
        (base / name).mkdir(parents=True, exist_ok=True)
    return base


def profile_path_for(profile_name: str, base_dir: Path | None = None) -> Path:
    base = base_dir or get_base_config_dir()
    return base / "profiles" / f"{profile_name}.toml"


def log_path_for(profile_name: str, base_dir: Path | None = None) -> Path:
    base = base_dir or get_base_config_dir()
    return base / "logs" / f"{profile_name}.log"


class ConfigError(RuntimeError):
    """Raised when a configuration file is invalid."""

    pass


@dataclass
class ProfileBlock:
    """Metadata about the profile itself."""

    name: str
    description: str = ""


@dataclass
class ConnectionBlock:
    """How to reach the remote host."""

    host: str
    port: int = DEFAULT_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    key_file: Optional[str] = None
    use_agent: bool = True
    secure: bool = True
    timeout: float = DEFAULT_CONNECT_TIMEOUT


@dataclass
class PathsBlock:
    local: str
    remote: str


@dataclass
class AnalysisBlock:
    mode: types.AnalysisMode = types.AnalysisMode.FULL


@dataclass
class ExcludeBlock:
    """User exclusions; merged with the built-in defaults at load time."""

    extensions_from_sync: List[str] = field(default_factory=list)
    extensions_from_analysis: List[str] = field(default_factory=list)
    folders_from_sync: List[str] = field(default_factory=list)
    folders_from_analysis: List[str] = field(default_factory=list)
    files_from_sync: List[str] = field(default_factory=list)
    files_from_analysis: List[str] = field(default_factory=list)


@dataclass
class ProfileConfig:
    """Complete config document representation."""

    profile: ProfileBlock
    connection: ConnectionBlock
    paths: PathsBlock
    analysis: AnalysisBlock = field(default_factory=AnalysisBlock)
    exclude: ExcludeBlock = field(default_factory=ExcludeBlock)

    def to_connection_settings(self) -> ConnectionSettings:
        conn = self.connection
        return ConnectionSettings(
            host=conn.host,
            port=conn.port,
            username=conn.username,
            password=conn.password,
            key_file=str(Path(conn.key_file).expanduser()) if conn.key_file else None,
            use_agent=conn.use_agent,
            secure=conn.secure,
            connect_timeout=conn.timeout,
        )

    def to_exclusion_rules(self) -> ExclusionRules:
        return ExclusionRules.build(**{key: getattr(self.exclude, key) for key in EXCLUDE_KEYS})

    @property
    def local_path(self) -> Path:
        return Path(self.paths.local).expanduser()


def build_profile_template(name: str = "example") -> ProfileConfig:
    """Return an in-memory template with sensible defaults."""
    return ProfileConfig(
        profile=ProfileBlock(name=name, description=f"{name} profile"),
        connection=ConnectionBlock(host="example.com", username="deploy", key_file="~/.ssh/id_ed25519"),
        paths=PathsBlock(local=f"~/projects/{name}", remote=f"/var/www/{name}"),
    )


def profile_to_toml(profile: ProfileConfig) -> str:
    """Serialize a ProfileConfig back to TOML text."""
    lines: List[str] = []

    def add_section(header: str, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        lines.append(header)
        for key, value in fields.items():
            lines.append(f"{key} = {_format_value(value)}")
        lines.append("")

    add_section("[profile]", {"name": profile.profile.name, "description": profile.profile.description})
    conn = profile.connection
    add_section(
        "[connection]",
        {
            "host": conn.host,
            "port": conn.port,
            **({"username": conn.username} if conn.username else {}),
            **({"password": conn.password} if conn.password else {}),
            **({"key_file": conn.key_file} if conn.key_file else {}),
            "use_agent": conn.use_agent,
            "secure": conn.secure,
            "timeout": conn.timeout,
        },
    )
    add_section("[paths]", {"local": profile.paths.local, "remote": profile.paths.remote})
    add_section("[analysis]", {"mode": profile.analysis.mode.value})
    add_section("[exclude]", {key: getattr(profile.exclude, key) for key in EXCLUDE_KEYS})

    content = "\n".join(lines).strip()
    return content + ("\n" if content else "")


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return '"' + escaped + '"'
    if isinstance(value, list):
        inner = ", ".join(_format_value(item) for item in value)
        return f"[{inner}]"
    raise TypeError(f"Unsupported TOML value: {value!r}")


def list_profiles(base_dir: Path | None = None) -> List[str]:
    profiles_dir = (base_dir or get_base_config_dir()) / "profiles"
    if not profiles_dir.is_dir():
        return []
    return sorted(path.stem for path in profiles_dir.glob("*.toml"))


def load_profile(profile_name: str, base_dir: Path | None = None) -> ProfileConfig:
    """Load and validate a profile file from the config directory."""
    base = ensure_config_structure(base_dir)
    profile_path = profile_path_for(profile_name, base)
    if not profile_path.exists():
        raise ConfigError(f"Profile '{profile_name}' not found at {profile_path}.")
    return load_profile_from_path(profile_path)


def load_profile_from_path(profile_path: Path) -> ProfileConfig:
    """Load a profile from an explicit path."""
    try:
        raw_data = profile_path.read_text()
    except OSError as exc:  # pragma: no cover - filesystem errors
        raise ConfigError(f"Unable to read profile file {profile_path}: {exc}") from exc

    try:
        mapping = tomllib.loads(raw_data)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse {profile_path.name}: {exc}") from exc

    return _build_profile_config(mapping, profile_path)


def _build_profile_config(data: Mapping[str, Any], profile_path: Path) -> ProfileConfig:
    return ProfileConfig(
        profile=_load_profile_block(_require_table(data, "profile", profile_path), profile_path),
        connection=_load_connection(_require_table(data, "connection", profile_path), profile_path),
        paths=_load_paths(_require_table(data, "paths", profile_path), profile_path),
        analysis=_load_analysis(_optional_table(data, "analysis", profile_path), profile_path),
        exclude=_load_exclude(_optional_table(data, "exclude", profile_path), profile_path),
    )


def _load_profile_block(block: Mapping[str, Any], profile_path: Path) -> ProfileBlock:
    name = _require_str(block, "name", "[profile]", profile_path)
    description = block.get("description", "")
    if not isinstance(description, str):
        raise ConfigError(f"[profile] 'description' must be a string in {profile_path}.")
    return ProfileBlock(name=name, description=description)


def _load_connection(block: Mapping[str, Any], profile_path: Path) -> ConnectionBlock:
    host = _require_str(block, "host", "[connection]", profile_path)
    if not host.strip():
        raise ConfigError(f"[connection] 'host' must not be empty in {profile_path}.")
    port = block.get("port", DEFAULT_PORT)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError(f"[connection] 'port' must be an integer between 1 and 65535 in {profile_path}.")
    timeout = block.get("timeout", DEFAULT_CONNECT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"[connection] 'timeout' must be a positive number in {profile_path}.")
    for key in ("username", "password", "key_file"):
        if key in block and not isinstance(block[key], str):
            raise ConfigError(f"[connection] '{key}' must be a string in {profile_path}.")
    return ConnectionBlock(
        host=host,
        port=port,
        username=block.get("username") or None,
        password=block.get("password") or None,
        key_file=block.get("key_file") or None,
        use_agent=bool(block.get("use_agent", True)),
        secure=bool(block.get("secure", True)),
        timeout=float(timeout),
    )


def _load_paths(block: Mapping[str, Any], profile_path: Path) -> PathsBlock:
    local = _require_str(block, "local", "[paths]", profile_path)
    remote = _require_str(block, "remote", "[paths]", profile_path)
    if not local.strip():
        raise ConfigError(f"[paths] 'local' must not be empty in {profile_path}.")
    if not remote.startswith("/"):
        raise ConfigError(f"[paths] 'remote' must be an absolute path in {profile_path}.")
    return PathsBlock(local=local, remote=remote)


def _load_analysis(block: Mapping[str, Any], profile_path: Path) -> AnalysisBlock:
    if not block:
        return AnalysisBlock()
    mode = block.get("mode", types.AnalysisMode.FULL.value)
    try:
        return AnalysisBlock(mode=types.AnalysisMode(mode))
    except ValueError as exc:
        allowed = ", ".join(m.value for m in types.AnalysisMode)
        raise ConfigError(f"[analysis] mode '{mode}' is not one of {allowed} in {profile_path}.") from exc


def _load_exclude(block: Mapping[str, Any], profile_path: Path) -> ExcludeBlock:
    if not block:
        return ExcludeBlock()
    values: Dict[str, List[str]] = {}
    for key in EXCLUDE_KEYS:
        items = block.get(key, [])
        if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
            raise ConfigError(f"exclude.{key} must be an array of strings in {profile_path}.")
        values[key] = list(items)
    unknown = sorted(set(block) - set(EXCLUDE_KEYS))
    if unknown:
        raise ConfigError(f"Unknown [exclude] keys {', '.join(unknown)} in {profile_path}.")
    return ExcludeBlock(**values)


def _require_table(mapping: Mapping[str, Any], key: str, profile_path: Path) -> Mapping[str, Any]:
    value = mapping.get(key)
    if not isinstance(value, Mapping):
        raise ConfigError(f"Section [{key}] is required in {profile_path}.")
    return value


def _optional_table(mapping: Mapping[str, Any], key: str, profile_path: Path) -> Mapping[str, Any]:
    value = mapping.get(key, {})
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a [{key}] table in {profile_path}.")
    return value


def _require_str(block: Mapping[str, Any], key: str, section: str, profile_path: Path) -> str:
    value = block.get(key)
    if not isinstance(value, str):
        raise ConfigError(f"{section} must define string '{key}' in {profile_path}.")
    return value
