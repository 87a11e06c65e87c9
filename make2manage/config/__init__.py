"""
Configuration management for make2manage.

This module provides:
- Default shop-floor, customer and generation constants
- Configuration schema and validation
- Support for custom configuration files (JSON/YAML)
- Difficulty presets for session settings
"""

from make2manage.config.defaults import DIFFICULTY_PRESETS
from make2manage.config.schema import (
    DepartmentConfig,
    EngineConfig,
    EventsConfig,
    GenerationConfig,
    ScoringConfig,
    apply_difficulty,
    get_default_config,
)

__all__ = [
    "DIFFICULTY_PRESETS",
    # Pydantic config classes
    "DepartmentConfig",
    "EngineConfig",
    "EventsConfig",
    "GenerationConfig",
    "ScoringConfig",
    # Functions
    "apply_difficulty",
    "get_default_config",
]
