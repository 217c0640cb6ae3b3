"""
Configuration management for tgrelabel.

This module provides centralized configuration with sensible defaults
that can be overridden by a user config file. The config file is loaded
from (in order of priority):
    1. ./tgrelabel.yaml or ./tgrelabel.json (current directory)
    2. ~/.config/tgrelabel/config.yaml (or config.json)
    3. ~/.tgrelabel.yaml (or ~/.tgrelabel.json)

All settings have defaults, so no config file is required.

Usage:
    from tgrelabel.config import config

    # Access settings
    lead_in = config['playback']['lead_in_ms']
    rules = config['rules']
"""

import copy
import json
import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULT CONFIGURATION
# =============================================================================

DEFAULTS = {
    # -------------------------------------------------------------------------
    # Match preview playback
    # -------------------------------------------------------------------------
    'playback': {
        'device': None,         # Output device name (None = system default)
        'volume_factor': 1.0,   # Amplitude multiplier for previews
        'lead_in_ms': 300,      # Audio played before the first matched phone
        'tail_ms': 600,         # Audio played after the last matched phone
        'fade_ms': 50,          # Fade-in/fade-out length of each preview
    },

    # -------------------------------------------------------------------------
    # Device test tone
    # -------------------------------------------------------------------------
    'test_tone': {
        'frequency': 440.0,  # Hz
        'duration': 0.9,     # seconds
        'amplitude': 0.2,
        'fade': 0.2,         # seconds, both ends
        'sample_rate': 48000,
    },

    # -------------------------------------------------------------------------
    # Tier alignment and matching
    # -------------------------------------------------------------------------
    'matching': {
        'overlap_threshold': 0.8,  # Word must cover > 80% of a phone to own it
        'context_size': 2,         # Phones shown on each side of a match
        'word_separator': ':',     # Word labels are cut at this character
    },

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------
    'files': {
        'textgrid_extension': '.textgrid',  # Compared case-insensitively
        'audio_extension': '.wav',
        'auto_backup': False,   # Copy each file once before the first rewrite
        'backup_suffix': '.bak',
    },

    # -------------------------------------------------------------------------
    # Rules: list of {name: "flap,2", search: ["t er"], options: ["dx *"]}
    # -------------------------------------------------------------------------
    'rules': [],
}


# =============================================================================
# CONFIG LOADING
# =============================================================================

def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Values from 'override' take precedence over 'base'.
    Nested dicts are merged recursively.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _find_config_file() -> Path | None:
    """Find the user's config file, if it exists."""
    candidates = [
        Path('./tgrelabel.yaml'),
        Path('./tgrelabel.json'),
        Path.home() / '.config' / 'tgrelabel' / 'config.yaml',
        Path.home() / '.config' / 'tgrelabel' / 'config.json',
        Path.home() / '.tgrelabel.yaml',
        Path.home() / '.tgrelabel.json',
    ]

    for path in candidates:
        if path.exists():
            return path
    return None


def _load_config_file(path: Path) -> dict:
    """Load configuration from a file."""
    with open(path, 'r', encoding='utf-8') as f:
        if path.suffix in ('.yaml', '.yml'):
            return yaml.safe_load(f) or {}
        else:
            return json.load(f)


def load_config(config_path: Path | str | None = None) -> dict:
    """
    Load configuration with user overrides.

    Args:
        config_path: Optional explicit path to config file. If provided,
                     this file will be loaded instead of searching default locations.

    Returns a dict with all settings, using defaults for any
    values not specified in the user's config file.
    """
    config = copy.deepcopy(DEFAULTS)

    # Use explicit path if provided, otherwise search default locations
    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.warning(f"Config file not found: {config_file}")
            return config
    else:
        config_file = _find_config_file()

    if config_file:
        try:
            user_config = _load_config_file(config_file)
            config = _deep_merge(config, user_config)
            logger.info(f"Loaded config from: {config_file}")
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {config_file}: {e}")

    return config


def save_default_config(path: Path | str):
    """
    Save the default configuration to a file.

    Useful for creating a template config file that users can edit.
    """
    path = Path(path)

    with open(path, 'w', encoding='utf-8') as f:
        if path.suffix in ('.yaml', '.yml'):
            yaml.safe_dump(DEFAULTS, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(DEFAULTS, f, indent=2)


# =============================================================================
# GLOBAL CONFIG INSTANCE
# =============================================================================

# Load config on module import
config = load_config()


def reload_config(config_path: Path | str | None = None):
    """
    Reload configuration from file.

    The module-level ``config`` dict is updated in place so modules that
    imported it keep seeing current values.
    """
    fresh = load_config(config_path)
    config.clear()
    config.update(fresh)


def load_config_from_path(path: Path | str) -> dict:
    """
    Load configuration from a specific file path.

    Args:
        path: Path to the config file (YAML or JSON)

    Returns:
        Merged config dict with defaults

    Raises:
        FileNotFoundError: If the config file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    base_config = copy.deepcopy(DEFAULTS)
    user_config = _load_config_file(path)
    return _deep_merge(base_config, user_config)
