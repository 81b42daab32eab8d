"""
Operations package for the Scenario Maps

This package centralizes the operational tools:
- Configuration management
- Logging setup
- CLI

The Config class is exposed at the package level for convenient imports:
    from ops import Config
"""

from .config_loader import Config

__all__ = ["Config"]
