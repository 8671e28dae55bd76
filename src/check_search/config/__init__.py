"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    CheckConfig,
    CheckSearchConfig,
    ChecksConfig,
    CodeOwnershipConfig,
    DependencyRulesConfig,
    ForbiddenEdge,
    ImportStarConfig,
    LoggingConfig,
    NoInlinePropsConfig,
    OwnershipEntry,
    PackageConfig,
    RetryConfig,
    SearchConfig,
    TravisGoConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "CheckSearchConfig",
    # Top-level configs
    "SearchConfig",
    "ChecksConfig",
    "LoggingConfig",
    "RetryConfig",
    # Check-specific configs
    "CheckConfig",
    "ImportStarConfig",
    "NoInlinePropsConfig",
    "DependencyRulesConfig",
    "PackageConfig",
    "ForbiddenEdge",
    "CodeOwnershipConfig",
    "OwnershipEntry",
    "TravisGoConfig",
]
