"""Configuration loading, schema, and defaults."""

from difflint.config.loader import ConfigError, load_config
from difflint.config.schema import DifflintConfig

__all__ = ["ConfigError", "DifflintConfig", "load_config"]
