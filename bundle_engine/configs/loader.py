"""
Configuration loading and validation.

This module handles loading of YAML configuration files and
validates that all required fields are present.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List

import yaml

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def load_config(filepath: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        filepath: Path to the YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    logger.info(f"Loading configuration from {filepath}")
    with open(filepath, "r") as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Configuration file is empty: {filepath}")

    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration dictionary

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    required_sections = ["global", "modeling"]
    for section in required_sections:
        if section not in config:
            issues.append(f"Missing required section: {section}")

    if "global" in config:
        global_config = config["global"]
        if "random_seed" not in global_config:
            issues.append("Missing global.random_seed (required for reproducibility)")
        if "model_path" not in global_config:
            issues.append("Missing global.model_path")
        log_level = str(global_config.get("log_level", "INFO")).upper()
        if log_level not in VALID_LOG_LEVELS:
            issues.append(f"Unknown global.log_level: {log_level}")

    if "modeling" in config:
        modeling = config["modeling"]

        layers = modeling.get("hidden_layer_sizes", [29, 16, 8])
        if not layers or any(not isinstance(n, int) or n < 1 for n in layers):
            issues.append(f"modeling.hidden_layer_sizes must be positive integers, got {layers}")

        learning_rate = modeling.get("learning_rate", 0.001)
        if learning_rate <= 0:
            issues.append(f"modeling.learning_rate must be > 0, got {learning_rate}")

        split = modeling.get("validation_split", 0.2)
        if not 0 <= split < 1:
            issues.append(f"modeling.validation_split must be in [0, 1), got {split}")

        for key in ["epochs", "batch_size", "min_training_samples", "max_training_products"]:
            if key in modeling and modeling[key] < 1:
                issues.append(f"modeling.{key} must be >= 1, got {modeling[key]}")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "modeling.epochs")
        default: Default value if path doesn't exist

    Returns:
        Configuration value or default
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value
