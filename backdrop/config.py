"""Configuration management for Backdrop.

Two config sections:
- store: schema strictness for record writes
- factories: creation depth guard and fake-data seeding

Config resolution order (highest priority first):
1. Programmatic (BackdropConfig constructed in code)
2. Environment variables (BACKDROP_STRICT_SCHEMA, BACKDROP_MAX_DEPTH, etc.)
3. Config file (~/.config/backdrop/config.json, managed by `backdrop config`)
4. Hardcoded defaults
"""

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


# =============================================================================
# Config file location
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "backdrop"
CONFIG_FILE = CONFIG_DIR / "config.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: str) -> bool:
    """Parse a boolean from an env var or CLI string.

    Raises:
        ValueError: If the string is not a recognised boolean.
    """
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


# =============================================================================
# Config dataclasses
# =============================================================================


@dataclass
class StoreConfig:
    """Record store configuration.

    - strict_schema: reject attribute keys a model does not declare
    """

    strict_schema: bool = False


# Each nested creation costs several interpreter frames; deeper chains
# would overflow the interpreter stack before the depth guard fires.
MAX_DEPTH_CEILING = 100


@dataclass
class FactoryConfig:
    """Factory engine configuration.

    - max_depth: deepest allowed chain of nested creations
      (1 to MAX_DEPTH_CEILING)
    - seed: base seed for Faker-backed attribute values
    - locale: Faker locale for fake values
    """

    max_depth: int = 50
    seed: int = 0
    locale: str = "en_US"


# =============================================================================
# Main config class
# =============================================================================


@dataclass
class BackdropConfig:
    """Top-level backdrop configuration.

    Examples:
        # Package use, no files needed
        config = BackdropConfig(store=StoreConfig(strict_schema=True))

        # CLI use, loads from ~/.config/backdrop/config.json
        config = BackdropConfig.load()
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    factories: FactoryConfig = field(default_factory=FactoryConfig)

    @classmethod
    def load(cls) -> "BackdropConfig":
        """Load config from file + env vars.

        Priority: env var values > config.json values > defaults.
        """
        config = cls()

        # Layer 1: Load from config file if it exists
        if CONFIG_FILE.exists():
            try:
                with open(CONFIG_FILE) as f:
                    data = json.load(f)
                _apply_dict(config, data)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Failed to load config from %s: %s", CONFIG_FILE, exc)

        # Layer 2: Env var overrides
        if val := os.environ.get("BACKDROP_STRICT_SCHEMA"):
            try:
                config.store.strict_schema = parse_bool(val)
            except ValueError:
                logger.warning("Invalid BACKDROP_STRICT_SCHEMA=%r, ignoring", val)
        if val := os.environ.get("BACKDROP_MAX_DEPTH"):
            try:
                config.factories.max_depth = int(val)
            except ValueError:
                logger.warning("Invalid BACKDROP_MAX_DEPTH=%r, ignoring", val)
        if val := os.environ.get("BACKDROP_SEED"):
            try:
                config.factories.seed = int(val)
            except ValueError:
                logger.warning("Invalid BACKDROP_SEED=%r, ignoring", val)
        if val := os.environ.get("BACKDROP_LOCALE"):
            config.factories.locale = val

        return config

    def save(self) -> None:
        """Save config to ~/.config/backdrop/config.json."""
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for display."""
        return {
            "store": asdict(self.store),
            "factories": asdict(self.factories),
        }

    # ── Convenience properties ──

    @property
    def strict_schema(self) -> bool:
        return self.store.strict_schema

    @property
    def max_depth(self) -> int:
        return self.factories.max_depth


# =============================================================================
# Config dict application
# =============================================================================


def _apply_dict(config: BackdropConfig, data: dict) -> None:
    """Apply a dict of values onto a BackdropConfig."""
    if "store" in data and isinstance(data["store"], dict):
        for k, v in data["store"].items():
            if hasattr(config.store, k):
                if k == "strict_schema" and isinstance(v, str):
                    v = parse_bool(v)
                setattr(config.store, k, bool(v))
    if "factories" in data and isinstance(data["factories"], dict):
        for k, v in data["factories"].items():
            if hasattr(config.factories, k):
                if k in ("max_depth", "seed"):
                    v = int(v)
                setattr(config.factories, k, v)


# =============================================================================
# Global config singleton
# =============================================================================

_config: BackdropConfig | None = None


def get_config() -> BackdropConfig:
    """Get the global BackdropConfig instance.

    First call loads from file + env vars. Subsequent calls return cached instance.
    Use configure() to replace the global config programmatically.
    """
    global _config
    if _config is None:
        _config = BackdropConfig.load()
    return _config


def configure(config: BackdropConfig) -> None:
    """Set the global BackdropConfig programmatically.

    Use this when backdrop is used as a package:
        from backdrop.config import configure, BackdropConfig, StoreConfig
        configure(BackdropConfig(store=StoreConfig(strict_schema=True)))
    """
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global config (forces reload on next get_config())."""
    global _config
    _config = None
