"""
binload Configuration Management
=================================

Centralized configuration for the binload toolkit using Python dataclasses
and TOML-based persistence.

Architecture follows the Twelve-Factor App methodology for configuration
management (Wiggins, 2011), separating config from code.

References:
    - Wiggins, A. (2011). The Twelve-Factor App. https://12factor.net/
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[no-redef]


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"

_VALID_FORMATS: frozenset[str] = frozenset({"auto", "elf", "pe"})
_VALID_SYNTAXES: frozenset[str] = frozenset({"intel", "att"})


# ========================== Tool-Specific Configs ==========================


@dataclass(frozen=False, slots=True)
class LoaderConfig:
    """Configuration for the binary model builder.

    Size limits guard against pathological inputs: a file above
    ``max_file_size`` is refused before it is opened, and a section whose
    declared size exceeds ``max_section_size`` cannot be given a buffer.
    """

    max_file_size: int = 268_435_456  # 256 MiB
    max_section_size: int = 268_435_456  # 256 MiB
    default_format: str = "auto"

    def __post_init__(self) -> None:
        self.default_format = self.default_format.lower()
        if self.default_format not in _VALID_FORMATS:
            raise ValueError(
                f"loader.default_format must be one of {sorted(_VALID_FORMATS)}, "
                f"got {self.default_format!r}"
            )
        if self.max_file_size <= 0 or self.max_section_size < 0:
            raise ValueError("loader size limits must be positive")


@dataclass(frozen=False, slots=True)
class DisasmConfig:
    """Configuration for the capstone disassembly front-end."""

    section: str = ".text"
    max_instructions: int = 0  # 0 = no limit
    syntax: str = "intel"

    def __post_init__(self) -> None:
        self.syntax = self.syntax.lower()
        if self.syntax not in _VALID_SYNTAXES:
            raise ValueError(
                f"disasm.syntax must be one of {sorted(_VALID_SYNTAXES)}, "
                f"got {self.syntax!r}"
            )
        if self.max_instructions < 0:
            raise ValueError("disasm.max_instructions must not be negative")


# =========================== Global Settings ===============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Global settings: logging verbosity and destinations."""

    log_level: str = "WARNING"
    log_file: str = ""
    log_json: bool = False
    debug: bool = False
    version: str = "1.0.0"


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class BinloadConfig:
    """Master configuration aggregating all tool-specific and global settings.

    Usage:
        >>> config = BinloadConfig.load()                  # from default path
        >>> config = BinloadConfig.load("custom.toml")     # from custom path
        >>> print(config.disasm.section)
        '.text'
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    loader: LoaderConfig = field(default_factory=LoaderConfig)
    disasm: DisasmConfig = field(default_factory=DisasmConfig)

    # ------------------------------------------------------------------ #
    #  TOML Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> BinloadConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``config.toml`` in the
        project root.  Missing keys fall back to dataclass defaults.

        Args:
            path: Filesystem path to a TOML configuration file.

        Returns:
            A fully-populated :class:`BinloadConfig` instance.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
            ValueError: If a section holds an invalid value.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            loader=cls._build_section(LoaderConfig, raw.get("loader", {})),
            disasm=cls._build_section(DisasmConfig, raw.get("disasm", {})),
        )

    # ------------------------------------------------------------------ #
    #  Serialisation helpers
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        """Serialise the entire configuration tree to a plain dictionary."""
        return asdict(self)

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are ignored so that
        forward-compatible config files do not break older code.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)
