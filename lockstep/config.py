"""Configuration loading for the :mod:`lockstep` publisher."""

from __future__ import annotations

import contextlib
import contextvars
import dataclasses as dc
import typing as typ
from collections import abc as cabc

from cyclopts.config import Toml

from lockstep.utils import normalise_repository_root

if typ.TYPE_CHECKING:  # pragma: no cover - type checking only
    from pathlib import Path

CONFIG_FILENAME = "lockstep.toml"

DEFAULT_TRUNK_BRANCH = "main"
DEFAULT_REMOTE = "origin"
DEFAULT_REQUIRED_TOOLS: typ.Final[tuple[str, ...]] = ("git", "npm", "prettier")

CONFIG_ROOT_TOML_KEYS: typ.Final[frozenset[str]] = frozenset(
    {"repository", "packages", "commands", "preflight"}
)
REPOSITORY_TOML_KEYS: typ.Final[frozenset[str]] = frozenset(
    {"trunk_branch", "remote", "url"}
)
PACKAGES_TOML_KEYS: typ.Final[frozenset[str]] = frozenset(
    {
        "primary",
        "secondary",
        "manifest",
        "lockfile",
        "build_output",
        "peer_dependency",
        "registry_url",
    }
)
COMMANDS_TOML_KEYS: typ.Final[frozenset[str]] = frozenset(
    {"install", "build", "publish", "format"}
)
PREFLIGHT_TOML_KEYS: typ.Final[frozenset[str]] = frozenset(
    {"required_tools", "verify_clean_install"}
)


class ConfigurationError(RuntimeError):
    """Raised when the :mod:`lockstep` configuration is invalid."""


class ConfigurationNotLoadedError(ConfigurationError):
    """Raised when code accesses the configuration before it is loaded."""


@dc.dataclass(frozen=True, slots=True)
class RepositoryConfig:
    """Settings describing the git repository being released."""

    trunk_branch: str = DEFAULT_TRUNK_BRANCH
    remote: str = DEFAULT_REMOTE
    url: str | None = None

    @classmethod
    def from_mapping(
        cls, mapping: cabc.Mapping[str, typ.Any] | None
    ) -> RepositoryConfig:
        """Create a :class:`RepositoryConfig` from a TOML table mapping."""
        if mapping is None:
            return cls()
        _validate_mapping_keys(mapping, set(REPOSITORY_TOML_KEYS), "repository")
        url = _optional_string(mapping.get("url"), "repository.url")
        return cls(
            trunk_branch=_string(
                mapping.get("trunk_branch"),
                "repository.trunk_branch",
                DEFAULT_TRUNK_BRANCH,
            ),
            remote=_string(mapping.get("remote"), "repository.remote", DEFAULT_REMOTE),
            url=None if url is None else url.rstrip("/"),
        )


@dc.dataclass(frozen=True, slots=True)
class PackagesConfig:
    """Settings describing the packages in the suite and their files."""

    primary: str | None = None
    secondary: tuple[str, ...] = ()
    manifest: str = "package.json"
    lockfile: str = "package-lock.json"
    build_output: str = "lib"
    peer_dependency: str | None = None
    registry_url: str | None = None

    @classmethod
    def from_mapping(
        cls, mapping: cabc.Mapping[str, typ.Any] | None
    ) -> PackagesConfig:
        """Create a :class:`PackagesConfig` from a TOML table mapping."""
        if mapping is None:
            return cls()
        _validate_mapping_keys(mapping, set(PACKAGES_TOML_KEYS), "packages")
        primary = _optional_string(mapping.get("primary"), "packages.primary")
        secondary = tuple(
            dict.fromkeys(_string_tuple(mapping.get("secondary"), "packages.secondary"))
        )
        if primary is not None and primary in secondary:
            message = "packages.secondary must not repeat the primary package."
            raise ConfigurationError(message)
        return cls(
            primary=primary,
            secondary=secondary,
            manifest=_string(mapping.get("manifest"), "packages.manifest", "package.json"),
            lockfile=_string(
                mapping.get("lockfile"), "packages.lockfile", "package-lock.json"
            ),
            build_output=_string(
                mapping.get("build_output"), "packages.build_output", "lib"
            ),
            peer_dependency=_optional_string(
                mapping.get("peer_dependency"), "packages.peer_dependency"
            ),
            registry_url=_optional_string(
                mapping.get("registry_url"), "packages.registry_url"
            ),
        )

    @property
    def directories(self) -> tuple[str, ...]:
        """Return every configured package directory, primary first."""
        if self.primary is None:
            return self.secondary
        return (self.primary, *self.secondary)


@dc.dataclass(frozen=True, slots=True)
class CommandsConfig:
    """External commands used for each package."""

    install: tuple[str, ...] = ("npm", "install")
    build: tuple[str, ...] = ("npm", "run", "build")
    publish: tuple[str, ...] = ("npm", "publish")
    format: tuple[str, ...] = ("prettier", "--write")

    @classmethod
    def from_mapping(
        cls, mapping: cabc.Mapping[str, typ.Any] | None
    ) -> CommandsConfig:
        """Create a :class:`CommandsConfig` from a TOML table mapping."""
        if mapping is None:
            return cls()
        _validate_mapping_keys(mapping, set(COMMANDS_TOML_KEYS), "commands")
        defaults = cls()
        return cls(
            install=_command(mapping.get("install"), "commands.install", defaults.install),
            build=_command(mapping.get("build"), "commands.build", defaults.build),
            publish=_command(mapping.get("publish"), "commands.publish", defaults.publish),
            format=_command(
                mapping.get("format"), "commands.format", defaults.format, allow_empty=True
            ),
        )


@dc.dataclass(frozen=True, slots=True)
class PreflightConfig:
    """Settings for publish pre-flight checks."""

    required_tools: tuple[str, ...] = DEFAULT_REQUIRED_TOOLS
    verify_clean_install: bool = False

    @classmethod
    def from_mapping(
        cls, mapping: cabc.Mapping[str, typ.Any] | None
    ) -> PreflightConfig:
        """Create a :class:`PreflightConfig` from a TOML table mapping."""
        if mapping is None:
            return cls()
        _validate_mapping_keys(mapping, set(PREFLIGHT_TOML_KEYS), "preflight")
        raw_tools = mapping.get("required_tools")
        tools = (
            DEFAULT_REQUIRED_TOOLS
            if raw_tools is None
            else tuple(
                dict.fromkeys(
                    trimmed
                    for entry in _string_tuple(raw_tools, "preflight.required_tools")
                    if (trimmed := entry.strip())
                )
            )
        )
        return cls(
            required_tools=tools,
            verify_clean_install=_boolean(
                mapping.get("verify_clean_install"), "preflight.verify_clean_install"
            ),
        )


@dc.dataclass(frozen=True, slots=True)
class LockstepConfig:
    """Strongly-typed representation of ``lockstep.toml``."""

    repository: RepositoryConfig = dc.field(default_factory=RepositoryConfig)
    packages: PackagesConfig = dc.field(default_factory=PackagesConfig)
    commands: CommandsConfig = dc.field(default_factory=CommandsConfig)
    preflight: PreflightConfig = dc.field(default_factory=PreflightConfig)

    @classmethod
    def from_mapping(cls, mapping: cabc.Mapping[str, typ.Any]) -> LockstepConfig:
        """Create a :class:`LockstepConfig` from a parsed configuration mapping."""
        _validate_mapping_keys(
            mapping, set(CONFIG_ROOT_TOML_KEYS), "configuration section"
        )
        return cls(
            repository=RepositoryConfig.from_mapping(
                _optional_mapping(mapping.get("repository"), "repository")
            ),
            packages=PackagesConfig.from_mapping(
                _optional_mapping(mapping.get("packages"), "packages")
            ),
            commands=CommandsConfig.from_mapping(
                _optional_mapping(mapping.get("commands"), "commands")
            ),
            preflight=PreflightConfig.from_mapping(
                _optional_mapping(mapping.get("preflight"), "preflight")
            ),
        )


_active_config: contextvars.ContextVar[LockstepConfig] = contextvars.ContextVar(
    "lockstep_active_config"
)


def _validate_mapping_keys(
    mapping: cabc.Mapping[str, typ.Any] | None,
    allowed_keys: set[str],
    context: str,
) -> None:
    """Raise :class:`ConfigurationError` when ``mapping`` has unknown keys."""
    if mapping is None:
        return
    unknown = set(mapping) - allowed_keys
    if unknown:
        joined = ", ".join(sorted(unknown))
        if context.endswith(" section"):
            message = f"Unknown {context}(s): {joined}."
        else:
            message = f"Unknown {context} option(s): {joined}."
        raise ConfigurationError(message)


def build_loader(repository_root: Path) -> Toml:
    """Return a Cyclopts loader for ``lockstep.toml`` in ``repository_root``."""
    resolved = normalise_repository_root(repository_root)
    return Toml(
        path=resolved / CONFIG_FILENAME,
        must_exist=False,
        allow_unknown=True,
        use_commands_as_keys=False,
    )


def load_from_loader(loader: Toml) -> LockstepConfig:
    """Load and validate configuration using ``loader``."""
    try:
        raw = loader.config
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    if not isinstance(raw, cabc.Mapping):
        message = "Configuration root must be a TOML table."
        raise ConfigurationError(message)
    return LockstepConfig.from_mapping(raw)


def load_configuration(repository_root: Path) -> LockstepConfig:
    """Load configuration for ``repository_root`` using Cyclopts.

    Only a ``lockstep.toml`` directly inside ``repository_root`` is read; the
    Cyclopts loader would otherwise fall back to one found in a parent
    directory. Without the file the defaults apply.
    """
    resolved = normalise_repository_root(repository_root)
    if not (resolved / CONFIG_FILENAME).is_file():
        return LockstepConfig()
    return load_from_loader(build_loader(resolved))


@contextlib.contextmanager
def use_configuration(configuration: LockstepConfig) -> typ.Iterator[None]:
    """Set ``configuration`` as the active configuration for the current context."""
    token = _active_config.set(configuration)
    try:
        yield
    finally:
        _active_config.reset(token)


def current_configuration() -> LockstepConfig:
    """Return the active configuration or raise if none has been set."""
    try:
        return _active_config.get()
    except LookupError as exc:
        message = "Configuration has not been loaded yet."
        raise ConfigurationNotLoadedError(message) from exc


def _validate_string_sequence(
    sequence: cabc.Sequence[typ.Any], field_name: str
) -> tuple[str, ...]:
    """Validate that ``sequence`` contains only strings and return them."""
    items: list[str] = []
    for index, entry in enumerate(sequence):
        if not isinstance(entry, str):
            message = (
                f"{field_name}[{index}] must be a string, got {type(entry).__name__}."
            )
            raise ConfigurationError(message)
        items.append(entry)
    return tuple(items)


def _string_tuple(value: object, field_name: str) -> tuple[str, ...]:
    """Return a tuple of strings derived from ``value``."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, cabc.Sequence) and not isinstance(value, str | bytes):
        return _validate_string_sequence(value, field_name)
    message = (
        f"{field_name} must be a string or a sequence of strings; "
        f"received {type(value).__name__}."
    )
    raise ConfigurationError(message)


def _command(
    value: object,
    field_name: str,
    default: tuple[str, ...],
    *,
    allow_empty: bool = False,
) -> tuple[str, ...]:
    """Return a command argument vector parsed from ``value``."""
    if value is None:
        return default
    if isinstance(value, str) or not isinstance(value, cabc.Sequence):
        message = (
            f"{field_name} must be a sequence of strings; "
            f"received {type(value).__name__}."
        )
        raise ConfigurationError(message)
    command = _validate_string_sequence(value, field_name)
    if not command and not allow_empty:
        message = f"{field_name} must not be empty."
        raise ConfigurationError(message)
    return command


def _string(value: object, field_name: str, default: str) -> str:
    """Return a non-empty string parsed from ``value`` or ``default``."""
    parsed = _optional_string(value, field_name)
    return default if parsed is None else parsed


def _optional_string(value: object, field_name: str) -> str | None:
    """Return a stripped, non-empty string or ``None`` when absent."""
    if value is None:
        return None
    if not isinstance(value, str):
        message = f"{field_name} must be a string; received {type(value).__name__}."
        raise ConfigurationError(message)
    trimmed = value.strip()
    if not trimmed:
        message = f"{field_name} must not be blank."
        raise ConfigurationError(message)
    return trimmed


def _boolean(value: object, field_name: str) -> bool:
    """Return a boolean parsed from ``value``."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    message = f"{field_name} must be a boolean; received {type(value).__name__}."
    raise ConfigurationError(message)


def _optional_mapping(
    value: object, field_name: str
) -> cabc.Mapping[str, typ.Any] | None:
    """Ensure ``value`` is a mapping if provided."""
    if value is None:
        return None
    if isinstance(value, cabc.Mapping):
        return typ.cast("cabc.Mapping[str, typ.Any]", value)
    message = f"{field_name} must be a TOML table; received {type(value).__name__}."
    raise ConfigurationError(message)
