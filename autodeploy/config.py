"""
Configuration for autodeploy.

Layering: built-in defaults, then an optional config file, then
environment variables. The merged dict is frozen into a ReleaseConfig that
every service receives explicitly.
"""

import os
import json
import tomllib
import logging
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .domain.project import Environment
from .errors import ConfigError

logger = logging.getLogger("autodeploy")

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_config_path() -> Path:
    """Get the path to the configuration file.

    Checks in order:
    1. AUTODEPLOY_CONFIG environment variable
    2. ~/.autodeploy/ directory
    """
    if 'AUTODEPLOY_CONFIG' in os.environ:
        return Path(os.environ['AUTODEPLOY_CONFIG'])

    config_dir = Path.home() / '.autodeploy'
    for filename in ['config.json', 'config.toml', 'config.yaml', 'config.yml']:
        path = config_dir / filename
        if path.exists():
            return path

    return config_dir / 'config.json'


def load_config() -> Dict[str, Any]:
    """Load configuration from file and environment.

    A broken file in ~/.autodeploy is logged and ignored; a file named by
    AUTODEPLOY_CONFIG must load.

    Raises:
        ConfigError: If the AUTODEPLOY_CONFIG file is missing or unreadable
    """
    config_path = get_config_path()
    explicit = 'AUTODEPLOY_CONFIG' in os.environ

    config = get_default_config()

    if config_path.exists() or explicit:
        try:
            if config_path.suffix.lower() in ['.toml']:
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif config_path.suffix.lower() in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                with open(config_path, 'r') as f:
                    file_config = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            if explicit:
                raise ConfigError(str(config_path), str(e)) from e
            logger.error(f"Error loading config from {config_path}: {e}")
        else:
            config = merge_configs(config, file_config)

    config = apply_env_overrides(config)
    config = apply_release_bot_env(config)

    return config


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "general": {
            "dry_run": False,
            "security_release": False,
            "max_workers": os.cpu_count() or 1,
        },
        "gitlab": {
            "endpoints": {
                "production": "https://gitlab.com/api/v4",
                "dev": "https://dev.gitlab.org/api/v4",
                "ops": "https://ops.gitlab.net/api/v4",
            },
            "tokens": {
                "production": "",
                "dev": "",
                "ops": "",
            },
            "timeout_seconds": 30,
            "rate_limit": {
                "max_retries": 3,
                "base_delay": 1.0,
                "max_delay": 60,
            },
        },
        "release_metadata": {
            "enabled": True,
        },
        "logging": {
            "level": "INFO",
            "format": DEFAULT_LOG_FORMAT,
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: AUTODEPLOY_SECTION_SUBSECTION_KEY
    For example: AUTODEPLOY_GENERAL_DRY_RUN=true
    """
    env_prefix = "AUTODEPLOY_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == 'AUTODEPLOY_CONFIG':
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        if value.lower() in ('true', '1', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', '0', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i:i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if not matched_key:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                # env var is longer than the config path it matched
                break

    return config


def apply_release_bot_env(config):
    """
    Honor the release-bot environment of CI jobs.

    TEST (any value) enables dry-run, SECURITY (any value) marks a security
    release, RELEASE_BOT_<ENV>_TOKEN provides API tokens.
    """
    if os.environ.get('TEST'):
        config['general']['dry_run'] = True
    if os.environ.get('SECURITY'):
        config['general']['security_release'] = True

    tokens = config['gitlab'].setdefault('tokens', {})
    for environment in Environment:
        token = os.environ.get(f"RELEASE_BOT_{environment.value.upper()}_TOKEN")
        if token:
            tokens[environment.value] = token

    return config


@dataclass(frozen=True)
class ReleaseConfig:
    """
    Immutable run configuration threaded through every service.

    Every mutating call checks dry_run; security_release decides which
    GitLab instance and project paths are used.
    """
    dry_run: bool = False
    security_release: bool = False
    max_workers: int = 1
    endpoints: Dict[str, str] = field(default_factory=lambda: dict(
        get_default_config()['gitlab']['endpoints']
    ))
    tokens: Dict[str, str] = field(default_factory=dict)
    timeout: int = 30
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    release_metadata: bool = True
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'ReleaseConfig':
        """Freeze a loaded configuration dict."""
        general = config.get('general', {})
        gitlab = config.get('gitlab', {})
        rate_limit = gitlab.get('rate_limit', {})
        logging_config = config.get('logging', {})

        return cls(
            dry_run=bool(general.get('dry_run', False)),
            security_release=bool(general.get('security_release', False)),
            max_workers=max(1, int(general.get('max_workers') or 1)),
            endpoints=dict(gitlab.get('endpoints', {})),
            tokens={k: v for k, v in gitlab.get('tokens', {}).items() if v},
            timeout=int(gitlab.get('timeout_seconds', 30)),
            max_retries=int(rate_limit.get('max_retries', 3)),
            base_delay=float(rate_limit.get('base_delay', 1.0)),
            max_delay=float(rate_limit.get('max_delay', 60)),
            release_metadata=bool(config.get('release_metadata', {}).get('enabled', True)),
            log_level=str(logging_config.get('level', 'INFO')).upper(),
            log_format=logging_config.get('format', DEFAULT_LOG_FORMAT),
        )

    @classmethod
    def load(cls) -> 'ReleaseConfig':
        return cls.from_dict(load_config())

    def with_overrides(self, **overrides) -> 'ReleaseConfig':
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @property
    def upstream_environment(self) -> Environment:
        """Security releases work against the dev mirror only."""
        return Environment.DEV if self.security_release else Environment.PRODUCTION

    def endpoint_for(self, environment: Environment) -> str:
        return self.endpoints[environment.value]

    def token_for(self, environment: Environment) -> Optional[str]:
        return self.tokens.get(environment.value)


class ModeTagFilter(logging.Filter):
    """Prefix records with [dry-run] / [security] when those modes are on."""

    def __init__(self, config: ReleaseConfig):
        super().__init__()
        tags = []
        if config.dry_run:
            tags.append('[dry-run]')
        if config.security_release:
            tags.append('[security]')
        self.prefix = ' '.join(tags)

    def filter(self, record: logging.LogRecord) -> bool:
        if self.prefix and not getattr(record, '_mode_tagged', False):
            record.msg = f"{self.prefix} {record.msg}"
            record._mode_tagged = True
        return True


def configure_logging(config: ReleaseConfig, verbose: bool = False) -> None:
    """Install the stderr handler used by the CLI."""
    root = logging.getLogger("autodeploy")
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(config.log_format))
    handler.addFilter(ModeTagFilter(config))

    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else config.log_level)
    root.propagate = False
