"""
Scoring utility functions.
Provides scoring configuration loading (YAML + presets) and the fan-out pool
size setting used by scoring.stats.
"""
from typing import Dict, Any, Optional
import copy
import os

import structlog
import yaml

log = structlog.get_logger("contrib_stats.config")

# filename used for scoring YAML configuration
SCORING_FILENAME = 'scoring.yaml'

DEFAULT_SCORING = {
    'quality': {
        'lookback_days': 90,
        'max_prs': 1000,
        'max_score': 60,
        'merged_points': 3,
        'opened_points': 1,
        'quick_close_penalty': 1,
        'quick_close_days': 7,
        'spam_lock_reason': 'spam',
    },
    'confidence': {
        'max_range_days': 90,
        'forker_bonus': 0.75,
        'stargazer_bonus': 0.5,
    },
    'oscr': {
        'confidence_weight': 0.2,
        'quality_weight': 0.8,
    },
}

# runtime override for the fan-out pool size (set from CLI)
_runtime_pool_size: Optional[int] = None


def default_config_path() -> str:
    env_path = os.getenv('CONTRIB_SCORING_CONFIG')
    if env_path:
        return env_path
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), 'config', SCORING_FILENAME)


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        doc = yaml.safe_load(f) or {}
    if not isinstance(doc, dict):
        raise ValueError(f"Scoring config at {path} must be a mapping")
    return doc


def _merge_sections(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for section, values in (overrides or {}).items():
        if section not in merged or not isinstance(values, dict):
            continue
        for k, v in values.items():
            if k in merged[section]:
                merged[section][k] = type(merged[section][k])(v)
    return merged


def load_scoring_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load scoring constants from a YAML file if present, merged over DEFAULT_SCORING.
    Unknown sections/keys are ignored; a missing file yields the defaults.
    """
    path = path or default_config_path()
    if not os.path.exists(path):
        return copy.deepcopy(DEFAULT_SCORING)
    try:
        doc = _read_yaml(path)
    except (OSError, ValueError, yaml.YAMLError) as ex:
        log.warning("config.load_failed", path=path, error=str(ex))
        return copy.deepcopy(DEFAULT_SCORING)
    return _merge_sections(DEFAULT_SCORING, doc)


def load_preset(preset_name: str, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the scoring config with the named preset merged over it.

    Raises ValueError when the config file or the preset does not exist.

    Example:
        merged = load_preset('quality_focused')
    """
    path = path or default_config_path()
    if not os.path.exists(path):
        raise ValueError(f"Scoring config file not found at: {path}")
    try:
        doc = _read_yaml(path)
    except (OSError, yaml.YAMLError) as ex:
        raise ValueError(f"Failed to load presets from {path}: {ex}")

    presets = doc.get('presets') or {}
    if preset_name not in presets:
        raise ValueError(f"Preset '{preset_name}' not found in {path}")
    base = _merge_sections(DEFAULT_SCORING, doc)
    return _merge_sections(base, presets.get(preset_name) or {})


def list_presets(path: Optional[str] = None) -> list:
    """Return the preset names defined in the scoring YAML (or an empty list)."""
    path = path or default_config_path()
    if not os.path.exists(path):
        return []
    try:
        doc = _read_yaml(path)
    except (OSError, ValueError, yaml.YAMLError):
        return []
    return list((doc.get('presets') or {}).keys())


def configure_pool(pool_size: Optional[int] = None):
    """Override the fan-out pool size at runtime (e.g. from CLI)."""
    global _runtime_pool_size
    if pool_size is not None:
        if int(pool_size) < 1:
            raise ValueError("pool size must be at least 1")
        _runtime_pool_size = int(pool_size)


def default_pool_size() -> int:
    """Pool size for category fan-out: runtime override, CONTRIB_POOL_SIZE, else max(2, cpu count)."""
    if _runtime_pool_size is not None:
        return _runtime_pool_size
    env_size = os.getenv('CONTRIB_POOL_SIZE')
    if env_size:
        try:
            return max(1, int(env_size))
        except ValueError:
            log.warning("config.bad_pool_size", value=env_size)
    return max(2, os.cpu_count() or 1)
