"""Load and merge configuration from .difflint.toml, CLI flags, and env vars."""

from __future__ import annotations

import dataclasses
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from difflint.config.schema import (
    OUTPUT_FORMATS,
    PLATFORMS,
    SEVERITIES,
    BitbucketConfig,
    DifflintConfig,
    GitConfig,
    GithubConfig,
    GitlabConfig,
    OutputConfig,
    ReportConfig,
    ReporterConfig,
)
from difflint.git.filter import compile_patterns

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".difflint.toml"


class ConfigError(Exception):
    """Raised when config is malformed or unreadable."""


def find_config_file(repo_root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = repo_root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    raw = data.get(section, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields and k != "token"}
    unknown = sorted(set(raw) - valid_fields)
    if unknown:
        logger.debug("Ignoring unknown keys in [%s]: %s", section, ", ".join(unknown))
    try:
        return cls(**filtered)
    except TypeError as exc:
        raise ConfigError(f"Invalid [{section}] section: {exc}") from exc


def _env_int(name: str) -> Optional[int]:
    val = os.environ.get(name)
    if not val:
        return None
    try:
        return int(val)
    except ValueError:
        logger.debug("Ignoring non-integer %s=%r", name, val)
        return None


def _merge_env_overrides(cfg: DifflintConfig) -> None:
    """Apply DIFFLINT_* environment variable overrides."""
    if val := os.environ.get("DIFFLINT_BASE_BRANCH"):
        cfg.git.base_branch = val
    if (n := _env_int("DIFFLINT_MAX_COMMITS")) is not None and n >= 0:
        cfg.git.max_commits = n
    if val := os.environ.get("DIFFLINT_FORMAT"):
        if val in OUTPUT_FORMATS:
            cfg.output.format = val  # type: ignore[assignment]
    if val := os.environ.get("DIFFLINT_FAIL_ON"):
        if val.lower() in SEVERITIES:
            cfg.report.fail_on = val.lower()
    if val := os.environ.get("DIFFLINT_PLATFORM"):
        if val in PLATFORMS:
            cfg.reporter.platform = val  # type: ignore[assignment]
    if (n := _env_int("DIFFLINT_MAX_COMMENTS")) is not None and n >= 0:
        cfg.reporter.max_comments = n

    # Tokens never come from the config file.
    cfg.github.token = os.environ.get("DIFFLINT_GITHUB_TOKEN") or os.environ.get("GITHUB_AUTH_TOKEN", "")
    cfg.gitlab.token = os.environ.get("DIFFLINT_GITLAB_TOKEN", "")
    cfg.bitbucket.token = os.environ.get("DIFFLINT_BITBUCKET_TOKEN", "")


def _validate(cfg: DifflintConfig) -> None:
    if cfg.reporter.platform not in PLATFORMS:
        raise ConfigError(
            f"Unknown reporter platform {cfg.reporter.platform!r} (expected one of: {', '.join(PLATFORMS)})"
        )
    if cfg.output.format not in OUTPUT_FORMATS:
        raise ConfigError(f"Unknown output format {cfg.output.format!r}")
    if cfg.report.fail_on.lower() not in SEVERITIES:
        raise ConfigError(f"Unknown fail_on severity {cfg.report.fail_on!r}")
    if cfg.git.max_commits < 0 or cfg.reporter.max_comments < 0:
        raise ConfigError("max_commits and max_comments must not be negative")
    for key in ("include", "exclude"):
        try:
            compile_patterns(getattr(cfg.git, key))
        except re.error as exc:
            raise ConfigError(f"Invalid regex in git.{key}: {exc}") from exc


def load_config(
    repo_root: Path,
    config_override: Optional[str] = None,
) -> DifflintConfig:
    """Load, validate, and return a DifflintConfig."""
    config_path = find_config_file(repo_root, config_override)

    if config_path is None:
        cfg = DifflintConfig()
    else:
        raw = _parse_toml(config_path)
        cfg = DifflintConfig(
            version=str(raw.get("version", "1.0")),
            git=_build_section(raw, GitConfig, "git"),
            output=_build_section(raw, OutputConfig, "output"),
            report=_build_section(raw, ReportConfig, "report"),
            reporter=_build_section(raw, ReporterConfig, "reporter"),
            github=_build_section(raw, GithubConfig, "github"),
            gitlab=_build_section(raw, GitlabConfig, "gitlab"),
            bitbucket=_build_section(raw, BitbucketConfig, "bitbucket"),
        )

    _merge_env_overrides(cfg)
    _validate(cfg)
    return cfg
