"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from .schema import CheckSearchConfig


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path) -> CheckSearchConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated CheckSearchConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    yaml_with_env = substitute_env_vars(raw_yaml)
    config_dict = yaml.safe_load(yaml_with_env) or {}

    config = CheckSearchConfig.model_validate(config_dict)

    # Relative CODEOWNERS paths resolve against the config file's directory
    ownership = config.checks.code_ownership
    if ownership.codeowners_file is not None and not ownership.codeowners_file.is_absolute():
        ownership.codeowners_file = path.parent / ownership.codeowners_file

    validate_config(config)

    return config


def validate_config(config: CheckSearchConfig) -> None:
    """
    Perform additional cross-field validation.

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If the configuration is internally inconsistent
    """
    deps = config.checks.dependency_rules
    package_names = [package.name for package in deps.packages]

    duplicates = {name for name in package_names if package_names.count(name) > 1}
    if duplicates:
        raise ValueError(f"Duplicate package names: {', '.join(sorted(duplicates))}")

    for edge in deps.forbidden_edges:
        for name in (edge.source, edge.target):
            if name not in package_names:
                raise ValueError(f"Forbidden edge references unknown package: {name}")
        if edge.source == edge.target:
            raise ValueError(f"Forbidden edge from a package to itself: {edge.source}")

    codeowners = config.checks.code_ownership.codeowners_file
    if codeowners is not None and not codeowners.exists():
        raise ValueError(f"CODEOWNERS file not found: {codeowners}")
