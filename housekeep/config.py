#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path

import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("housekeep")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. HOUSEKEEP_CONFIG environment variable
    2. ~/.housekeep/ directory
    """
    if 'HOUSEKEEP_CONFIG' in os.environ:
        path = Path(os.environ['HOUSEKEEP_CONFIG'])
        if path.exists():
            return path

    config_dir = Path.home() / '.housekeep'
    for filename in CONFIG_FILENAMES:
        path = config_dir / filename
        if path.exists() and path.stat().st_size > 10:  # Not empty/trivial
            return path

    # If no file exists, return default path for saving
    return config_dir / 'config.json'


def _read_config_file(config_path: Path) -> dict:
    """Read a config file, picking the parser from its suffix."""
    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        with open(config_path, 'rb') as f:
            return tomllib.load(f)
    if suffix in ('.yaml', '.yml'):
        import yaml
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    with open(config_path, 'r') as f:
        return json.load(f)


def load_config():
    """Load configuration from file."""
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    # Load from file if it exists
    if config_path.exists():
        try:
            file_config = _read_config_file(config_path)
            config = merge_configs(config, file_config)
        except Exception as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    return config


def save_config(config, config_path=None):
    """Save configuration to file."""
    config_path = Path(config_path) if config_path else get_config_path()

    try:
        # Create directory if it doesn't exist
        config_path.parent.mkdir(parents=True, exist_ok=True)

        if config_path.suffix.lower() == '.toml':
            # tomllib is read-only
            import toml
            with open(config_path, 'w') as f:
                toml.dump(config, f)
        elif config_path.suffix.lower() in ['.yaml', '.yml']:
            import yaml
            with open(config_path, 'w') as f:
                yaml.safe_dump(config, f, default_flow_style=False)
        else:
            with open(config_path, 'w') as f:
                json.dump(config, f, indent=2)

        logger.info(f"Configuration saved to {config_path}")
    except Exception as e:
        logger.error(f"Error saving config to {config_path}: {e}")
        raise

    return config_path


def get_default_config():
    """Get default configuration."""
    return {
        "general": {
            "parallel": 4,
            "maintenance_branch": "housekeeping",
            "version_file": "pom.xml",
            "ci_settings_file": "ci-settings.xml",
            "exclude_directories": ["node_modules", "target", "dist", ".idea", ".vscode"],
        },
        "replacements": {
            "scope": "all",  # all, version-file-only, exclude-version-file
            "rules": [],     # [{"search": "...", "replace": "..."}]
        },
        "version": {
            "bump_strategy": "patch",
            "parent_version": "",
            "structural_edits": [],
        },
        "ci_settings": {
            "structural_edits": [],
        },
        "build": {
            "command": ["mvn", "clean", "install", "-DskipTests",
                        "-Dmaven.compiler.showDeprecation=true"],
            "warnings_command": ["mvn", "clean", "compile",
                                 "-Dmaven.compiler.showDeprecation=true"],
            "check_warnings": True,
            "retry_attempts": 2,
            "retry_backoff_seconds": 5,
            "warning_keywords": ["deprecation", "deprecated", "warning"],
            "max_warning_lines": 100,
        },
        "scan": {
            "cache_ttl_seconds": 3600,
            "todo_extensions": [".java", ".xml", ".md", ".properties", ".yml",
                                ".yaml", ".js", ".ts", ".py", ".go"],
            "scanners": {},  # name -> command list, output is a JSON list of findings
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        },
    }


def configure_logging(config, debug=False):
    """Apply the logging section of the config to the package logger."""
    section = config.get('logging', {})
    level = logging.DEBUG if debug else getattr(
        logging, str(section.get('level', 'INFO')).upper(), logging.INFO
    )
    logger.setLevel(level)
    fmt = section.get('format')
    if fmt:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(fmt))


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
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: HOUSEKEEP_SECTION_KEY
    For example: HOUSEKEEP_GENERAL_PARALLEL=8
    """
    env_prefix = "HOUSEKEEP_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == "HOUSEKEEP_CONFIG":
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
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
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                # If we are at the end of the env var, we have found the key to set
                if i + best_match_len == len(key_parts):
                    current_level[matched_key] = typed_value
                    break

                # Otherwise, we descend into the dictionary
                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    # Path conflict, e.g., env var is longer but we found a non-dict value
                    break
            else:
                # No match found
                break

    return config
