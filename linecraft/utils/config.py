from __future__ import annotations

import copy
import hashlib
import json
from pathlib import Path
from typing import Any, Dict

from linecraft.qa.scoring import DEFAULT_MAJOR_TOLERANCE, DEFAULT_PENALTIES, DEFAULT_WEIGHTS

from .structured_data import load_structured_file

DEFAULT_CONFIG_PATH = Path("linecraft.yaml")

DEFAULT_CONFIG: Dict[str, Any] = {
    "pipeline": {
        "max_attempts": 3,
        "enable_qa": True,
        "enable_auto_retry": True,
        "minimum_pass_score": 70,
        "allow_parameter_escalation": True,
        "mode": "production",
        "default_temperature": 0.8,
    },
    "scoring": {
        "weights": dict(DEFAULT_WEIGHTS),
        "penalties": dict(DEFAULT_PENALTIES),
        "publish_threshold": 85,
        "major_tolerance": dict(DEFAULT_MAJOR_TOLERANCE),
    },
    "analysis": {
        "timeout_seconds": 60,
        "tool": "linecraft.analyze_image",
    },
    "generation": {
        "provider": "mcp",
        "tool": "linecraft.generate_image",
        "timeout_seconds": 120,
        "aspect_ratio": "1:1",
        "resolution_tier": "2K",
    },
    "logging": {
        "level": "INFO",
        "format": "auto",
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    config = copy.deepcopy(DEFAULT_CONFIG)
    if config_path.exists():
        user_config = load_structured_file(config_path)
        if user_config is None:
            return config
        if not isinstance(user_config, dict):
            raise RuntimeError(f"Config file {config_path} must contain a mapping/object.")
        config = _deep_merge(config, user_config)
    return config


def config_hash(config: Dict[str, Any]) -> str:
    canonical = json.dumps(config, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
