"""
JOURNEYMAP INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: Typed loading of config/journey.toml
- logger: Mutation event trail for editing sessions
"""

from infrastructure.logger import (
    MutationLogger,
    LoggerConfig,
    get_logger,
    configure_logger,
)
from infrastructure.config import (
    EditorConfig,
    load_toml_config,
    get_layout_config,
    get_editor_config,
    get_logger_config,
)

__all__ = [
    "MutationLogger",
    "LoggerConfig",
    "get_logger",
    "configure_logger",
    "EditorConfig",
    "load_toml_config",
    "get_layout_config",
    "get_editor_config",
    "get_logger_config",
]
