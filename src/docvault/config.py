"""Configuration for docvault.

Settings come from three layers, later layers overriding earlier ones:

    defaults (VaultConfig)
         |
         +---> FileConfigSource (YAML, JSON, TOML)
         |
         +---> EnvConfigSource (DOCVAULT_* environment variables)
         |
         v
    VaultConfig.validate()
         |
         +---> to_versioning_config()   -> VersionRecordStore
         +---> to_retention_config()    -> RetentionPolicy
         +---> to_persistence_config()  -> SeriesPersistence

The storage components never read this module; they receive the derived
configs.

Usage:
    >>> from docvault.config import load_config
    >>>
    >>> config = load_config("docvault.yaml")
    >>> config.rebuild_base_interval
    10
"""

from __future__ import annotations

import json
import logging
import os
import re
import tomllib
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from docvault.errors import VaultError
from docvault.fingerprint import FingerprintAlgorithm
from docvault.stores.compression import (
    CompressionAlgorithm,
    CompressionLevel,
    is_algorithm_available,
)
from docvault.stores.persistence import PersistenceConfig
from docvault.stores.retention import RetentionConfig
from docvault.stores.versioning import VersioningConfig

logger = logging.getLogger(__name__)


ENV_PREFIX = "DOCVAULT"

CONFIG_FILE_NAMES = ("docvault.yaml", "docvault.yml", "docvault.toml", "docvault.json")


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(VaultError):
    """Base configuration error."""

    pass


class ConfigValidationError(ConfigError):
    """Configuration validation error."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Configuration validation failed: {', '.join(errors)}")


class ConfigSourceError(ConfigError):
    """Configuration source error."""

    pass


# =============================================================================
# Configuration Sources
# =============================================================================


class ConfigSource(ABC):
    """Abstract base class for configuration sources."""

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """Load configuration values as a flat dictionary."""
        pass


class EnvConfigSource(ConfigSource):
    """Environment variable configuration source.

    Example:
        DOCVAULT_MAX_VERSIONS=100
        DOCVAULT_ENABLE_COMPRESSION=false

        Will produce:
        {"max_versions": 100, "enable_compression": False}
    """

    def __init__(
        self,
        prefix: str = ENV_PREFIX,
        environ: dict[str, str] | None = None,
    ) -> None:
        """Initialize environment source.

        Args:
            prefix: Environment variable prefix.
            environ: Mapping to read instead of ``os.environ``.
        """
        self._prefix = f"{prefix}_"
        self._environ = environ

    def load(self) -> dict[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        return {
            key[len(self._prefix):].lower(): self._parse_value(value)
            for key, value in environ.items()
            if key.startswith(self._prefix)
        }

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        # Boolean
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        # None
        if value.lower() in ("null", "none", ""):
            return None

        # Number
        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        # JSON array/object
        if value.startswith(("[", "{")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value


class FileConfigSource(ConfigSource):
    """File-based configuration source.

    Supports YAML, JSON, and TOML formats, detected from the file extension.
    Settings may sit at the top level or under a ``docvault`` table.
    """

    def __init__(self, path: str | Path, *, required: bool = False) -> None:
        """Initialize file source.

        Args:
            path: Path to configuration file.
            required: Raise error if file not found.
        """
        self._path = Path(path)
        self._required = required

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        """Load configuration from file.

        Raises:
            ConfigSourceError: If the file is required and missing, or if it
                exists but cannot be parsed.
        """
        if not self._path.exists():
            if self._required:
                raise ConfigSourceError(f"Configuration file not found: {self._path}")
            return {}

        suffix = self._path.suffix.lower()
        try:
            content = self._path.read_text(encoding="utf-8")
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content) or {}
            elif suffix == ".json":
                data = json.loads(content)
            elif suffix == ".toml":
                data = tomllib.loads(content)
            else:
                raise ConfigSourceError(f"Unsupported file format: {suffix}")
        except ConfigSourceError:
            raise
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigSourceError(f"Failed to load config {self._path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigSourceError(f"Configuration in {self._path} is not a mapping")
        section = data.get("docvault", data)
        return {_snake_case(k): v for k, v in section.items()}


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def _snake_case(key: str) -> str:
    """``versionFolder`` -> ``version_folder``; snake_case keys pass through."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key).replace("-", "_").lower()


# =============================================================================
# VaultConfig
# =============================================================================


@dataclass
class VaultConfig:
    """All docvault settings.

    Attributes:
        version_folder: Directory, relative to the vault root, holding series
            files.
        enable_compression: Compress series files.
        compression_algorithm: Algorithm name (gzip, zstd, lz4, lzma, bz2,
            none).
        compression_level: Level preset name (fastest ... maximum).
        enable_incremental_storage: Store patches against a rotating base.
        rebuild_base_interval: Records between full snapshots.
        enable_deduplication: Skip saving content identical to the latest
            version.
        auto_clear: Apply retention after every save.
        enable_max_versions: Cap the number of versions per document.
        max_versions: The version cap.
        enable_max_days: Cap the age of non-starred versions.
        max_days: The age cap in days.
        retention_floor: Unstarred versions count capping always keeps.
        versions_per_page: Page size for listings; 0 disables paging.
        excluded_folders: Folder prefixes that are never versioned.
        show_notifications: Show user-visible notifications.
        fingerprint_algorithm: xxh64, sha256 or legacy.
        auto_save_min_changes: Changed characters required for an auto save.
        pretty_print: Indent uncompressed series files.
    """

    version_folder: str = ".versions"
    enable_compression: bool = True
    compression_algorithm: str = "gzip"
    compression_level: str = "balanced"
    enable_incremental_storage: bool = True
    rebuild_base_interval: int = 10
    enable_deduplication: bool = True
    auto_clear: bool = True
    enable_max_versions: bool = True
    max_versions: int = 50
    enable_max_days: bool = False
    max_days: int = 30
    retention_floor: int = 1
    versions_per_page: int = 20
    excluded_folders: list[str] = field(default_factory=list)
    show_notifications: bool = True
    fingerprint_algorithm: str = "xxh64"
    auto_save_min_changes: int = 10
    pretty_print: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VaultConfig":
        """Create from a flat dictionary, coercing values to field types.

        Unknown keys are logged and ignored.

        Raises:
            ConfigValidationError: If a value cannot be coerced.
        """
        known = {f.name: f for f in fields(cls)}
        values: dict[str, Any] = {}
        errors: list[str] = []
        for key, value in data.items():
            name = _snake_case(key)
            if name not in known:
                logger.warning("Ignoring unknown setting %r", key)
                continue
            if value is None:
                continue
            try:
                values[name] = _coerce(known[name].type, value)
            except (TypeError, ValueError) as e:
                errors.append(f"{name}: {e}")
        if errors:
            raise ConfigValidationError(errors)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def merged(self, overrides: dict[str, Any]) -> "VaultConfig":
        """Return a copy with ``overrides`` applied."""
        data = self.to_dict()
        data.update({_snake_case(k): v for k, v in overrides.items() if v is not None})
        return VaultConfig.from_dict(data)

    def validate(self) -> None:
        """Check every setting.

        Raises:
            ConfigValidationError: Listing every problem found.
        """
        errors: list[str] = []
        if not self.version_folder.strip("/ "):
            errors.append("version_folder must not be empty")
        if self.rebuild_base_interval < 1:
            errors.append("rebuild_base_interval must be >= 1")
        if self.max_versions < 0:
            errors.append("max_versions must be >= 0")
        if self.max_days < 0:
            errors.append("max_days must be >= 0")
        if self.retention_floor < 1:
            errors.append("retention_floor must be >= 1")
        if self.versions_per_page < 0:
            errors.append("versions_per_page must be >= 0")
        if self.auto_save_min_changes < 0:
            errors.append("auto_save_min_changes must be >= 0")

        try:
            algorithm = CompressionAlgorithm(self.compression_algorithm.lower())
        except ValueError:
            errors.append(f"unknown compression_algorithm {self.compression_algorithm!r}")
        else:
            if self.enable_compression and not is_algorithm_available(algorithm):
                errors.append(
                    f"compression_algorithm {algorithm.value!r} is not installed"
                )
        try:
            CompressionLevel.from_name(self.compression_level)
        except ValueError:
            errors.append(f"unknown compression_level {self.compression_level!r}")
        try:
            FingerprintAlgorithm(self.fingerprint_algorithm.lower())
        except ValueError:
            errors.append(f"unknown fingerprint_algorithm {self.fingerprint_algorithm!r}")

        if errors:
            raise ConfigValidationError(errors)

    # -------------------------------------------------------------------------
    # Derived configs
    # -------------------------------------------------------------------------

    def to_versioning_config(self) -> VersioningConfig:
        return VersioningConfig(
            enable_incremental=self.enable_incremental_storage,
            rebuild_interval=self.rebuild_base_interval,
            enable_deduplication=self.enable_deduplication,
            auto_retention=self.auto_clear,
            fingerprint_algorithm=FingerprintAlgorithm(self.fingerprint_algorithm.lower()),
            versions_per_page=self.versions_per_page,
        )

    def to_retention_config(self) -> RetentionConfig:
        return RetentionConfig(
            max_count=self.max_versions if self.enable_max_versions else None,
            max_age_days=self.max_days if self.enable_max_days else None,
            floor=self.retention_floor,
        )

    def to_persistence_config(self) -> PersistenceConfig:
        return PersistenceConfig(
            version_folder=self.version_folder,
            enable_compression=self.enable_compression,
            compression_algorithm=CompressionAlgorithm(self.compression_algorithm.lower()),
            compression_level=CompressionLevel.from_name(self.compression_level),
            pretty_print=self.pretty_print,
        )


def _coerce(type_name: Any, value: Any) -> Any:
    """Coerce a raw setting to the declared field type."""
    type_name = str(type_name)
    if type_name == "bool":
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in ("true", "yes", "on", "1"):
                return True
            if lowered in ("false", "no", "off", "0"):
                return False
            raise ValueError(f"not a boolean: {value!r}")
        return bool(value)
    if type_name == "int":
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"not an integer: {value!r}")
        return int(value)
    if type_name == "str":
        if isinstance(value, (dict, list)):
            raise TypeError(f"expected text, got {type(value).__name__}")
        return str(value)
    if type_name.startswith("list"):
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if not isinstance(value, (list, tuple)):
            raise TypeError(f"expected a list, got {type(value).__name__}")
        return [str(v) for v in value]
    return value


# =============================================================================
# Loading
# =============================================================================


def find_config_file(root: str | Path = ".") -> Path | None:
    """Find a ``docvault.*`` config file directly under ``root``."""
    for name in CONFIG_FILE_NAMES:
        candidate = Path(root) / name
        if candidate.is_file():
            return candidate
    return None


def load_config(
    path: str | Path | None = None,
    env: bool = True,
    overrides: dict[str, Any] | None = None,
) -> VaultConfig:
    """Load and validate the configuration.

    Args:
        path: Config file. When given it must exist.
        env: Apply ``DOCVAULT_*`` environment variables.
        overrides: Values applied last, e.g. from command-line options.

    Returns:
        Validated configuration.

    Raises:
        ConfigSourceError: If the file is missing or unreadable.
        ConfigValidationError: If a setting is invalid.
    """
    data: dict[str, Any] = {}
    if path is not None:
        data.update(FileConfigSource(path, required=True).load())
        logger.debug("Loaded settings from %s", path)
    if env:
        known = {f.name for f in fields(VaultConfig)}
        data.update(
            {k: v for k, v in EnvConfigSource().load().items() if k in known}
        )
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    config = VaultConfig.from_dict(data)
    config.validate()
    return config
