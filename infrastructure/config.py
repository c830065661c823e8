"""
JOURNEYMAP CONFIG - Typed access to config/journey.toml

Configuration is read once from TOML and converted into typed structs,
so the rest of the code never touches raw dicts.

Usage:
    from infrastructure.config import load_toml_config, get_layout_config

    config = load_toml_config()
    layout_config = get_layout_config(config)
"""
import msgspec
import warnings
from typing import Optional, Dict, Any
from pathlib import Path

from core.layout import LayoutConfig
from infrastructure.logger import LoggerConfig


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "journey.toml"


class EditorConfig(msgspec.Struct, frozen=True, kw_only=True):
    """Settings for core.editor.JourneyEditor."""
    validate_after_mutation: bool = False
    viewport_margin: float = 24.0


class MutationLogSettings(msgspec.Struct, frozen=True, kw_only=True):
    """The [mutation_log] section as written in TOML."""
    enable_file_log: bool = False
    log_path: Optional[str] = None
    buffer_size: int = 1000


# =============================================================================
# LOADING
# =============================================================================

def load_toml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from journey.toml.

    Args:
        path: Alternate config file; defaults to config/journey.toml

    Returns:
        Dict with all configuration sections ({} if the file can't be read)
    """
    import tomllib
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        warnings.warn(f"Failed to load config from {config_path}: {e}")
        return {}


def _section(config: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    if config is None:
        config = load_toml_config()
    return config.get(name, {})


def get_layout_config(config: Optional[Dict[str, Any]] = None) -> LayoutConfig:
    """
    Build the LayoutConfig from the [layout] section.

    Raises:
        msgspec.ValidationError: if a value has the wrong type
    """
    return msgspec.convert(_section(config, "layout"), type=LayoutConfig)


def get_editor_config(config: Optional[Dict[str, Any]] = None) -> EditorConfig:
    """Build the EditorConfig from the [editor] section."""
    return msgspec.convert(_section(config, "editor"), type=EditorConfig)


def get_logger_config(config: Optional[Dict[str, Any]] = None) -> LoggerConfig:
    """Build the mutation LoggerConfig from the [mutation_log] section."""
    settings = msgspec.convert(_section(config, "mutation_log"), type=MutationLogSettings)
    return LoggerConfig(
        enable_file_log=settings.enable_file_log,
        log_path=Path(settings.log_path) if settings.log_path else None,
        buffer_size=settings.buffer_size,
    )
