"""
Configuration loading for the ticket scanner.

Reads config/scanner_config.yaml (or the path in TICKET_SCANNER_CONFIG)
and merges it over built-in defaults, so a partial YAML file is fine.
"""

import copy
import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from loguru import logger

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "scanner_config.yaml"

CRITICAL_FIELDS = [
    "DATE",
    "TIME",
    "TERMINAL ID",
    "LOCATION",
    "NO. TICKETS",
    "TOTAL AMOUNT",
    "TRACE NO",
]


def default_config() -> Dict:
    """Return default configuration"""
    return {
        'ocr': {
            'lang': 'en',
            'use_textline_orientation': True,
            'device': 'cpu',
        },
        'preprocessing': {
            'advanced': False,
            'target_dpi': 300,
            'target_text_height': 32,
            'enable_deskew': True,
            'enable_illumination_fix': True,
            'enable_binarization': True,
            'enable_denoising': True,
            'enable_unsharp_mask': True,
            'unsharp_mask_radius': 6.8,
            'unsharp_mask_amount': 2.69,
            'unsharp_mask_threshold': 0.0,
            'resize_before_processing': True,
        },
        'quality_gate': {
            'max_missing_fields': 2,
            'critical_fields': list(CRITICAL_FIELDS),
        },
        'compression': {
            'max_size_bytes': 1048576,
            'max_width': 1920,
            'max_height': 1080,
            'initial_quality': 0.9,
        },
        'api': {
            'base_url': 'https://localhost:5001/api/ocr/tickets',
            'timeout_seconds': 30,
        },
        'logging': {
            'level': 'INFO',
            'file': 'logs/ticket_scanner.log',
        },
    }


def _merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to YAML file. Falls back to TICKET_SCANNER_CONFIG,
            then to config/scanner_config.yaml.

    Returns:
        Configuration dict (defaults merged with the file contents)
    """
    if config_path is None:
        config_path = os.getenv("TICKET_SCANNER_CONFIG", str(DEFAULT_CONFIG_PATH))

    config = default_config()

    if not os.path.exists(config_path):
        logger.warning(f"Config file not found: {config_path}, using defaults")
    else:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = _merge(config, yaml.safe_load(f) or {})

    base_url = os.getenv("TICKET_API_BASE_URL")
    if base_url:
        config['api']['base_url'] = base_url

    return config
