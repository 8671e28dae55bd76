"""Pydantic models for configuration schema."""

from datetime import date
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SeverityName = Literal["error", "warning", "info"]
InconclusivePolicy = Literal["report", "drop"]

JS_TS_FILES = r"\.(js|jsx|ts|tsx)$"


class SearchConfig(BaseModel):
    """Search backend (Sourcegraph) configuration."""

    url: str = "https://sourcegraph.com"
    access_token: str | None = None
    timeout: float = Field(30.0, gt=0, le=600)
    page_size: int = Field(50, ge=1, le=1000)
    context_lines: int = Field(3, ge=0, le=50)
    requests_per_second: float = Field(5.0, gt=0, le=100)
    content_cache_ttl: int = Field(300, ge=0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Search URL must start with http:// or https://: {v}")
        return v.rstrip("/")


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/check-search/check-search.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RetryConfig(BaseModel):
    """Retry configuration for transient search failures."""

    max_attempts: int = Field(3, ge=1, le=10)
    initial_delay: float = Field(1.0, ge=0.1, le=10.0)
    max_delay: float = Field(30.0, ge=1.0, le=300.0)


class CheckConfig(BaseModel):
    """Settings shared by every check."""

    enabled: bool = True
    repositories: list[str] = []
    exclude_repositories: list[str] = []
    file_patterns: list[str] = []
    exclude_file_patterns: list[str] = []
    max_results: int = Field(500, ge=1, le=10000)
    severity: SeverityName = "warning"
    inconclusive: InconclusivePolicy = "report"

    @field_validator("repositories", "exclude_repositories")
    @classmethod
    def validate_repositories(cls, v: list[str]) -> list[str]:
        """Validate repository names and "org/*" wildcards."""
        from ..utils.security import validate_repo_pattern

        for repo in v:
            if not validate_repo_pattern(repo):
                raise ValueError(f"Invalid repository name: {repo}")
        return v


class ImportStarConfig(CheckConfig):
    """Wildcard import check."""

    file_patterns: list[str] = [JS_TS_FILES]
    languages: list[Literal["typescript", "python"]] = ["typescript"]
    # Module specifier -> exported symbols, used to build explicit import lists
    exports: dict[str, list[str]] = {}


class NoInlinePropsConfig(CheckConfig):
    """Inline component props check."""

    file_patterns: list[str] = [r"\.tsx$"]
    exclude_file_patterns: list[str] = [r"\.test\.tsx$", r"\.story\.tsx$"]


class PackageConfig(BaseModel):
    """A package the dependency check knows about."""

    name: str
    path: str  # Repository-relative path prefix, e.g. "client/web"
    module_prefixes: list[str] = []  # Bare import prefixes, e.g. "@sourcegraph/web"

    @field_validator("path")
    @classmethod
    def normalize_path(cls, v: str) -> str:
        """Strip leading "./" and surrounding slashes."""
        v = v.strip()
        if v.startswith("./"):
            v = v[2:]
        v = v.strip("/")
        if not v:
            raise ValueError("Package path cannot be empty")
        return v


class ForbiddenEdge(BaseModel):
    """A dependency from one package to another that is not allowed."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    reason: str | None = None


class DependencyRulesConfig(CheckConfig):
    """Forbidden package dependency check."""

    file_patterns: list[str] = [JS_TS_FILES]
    severity: SeverityName = "error"
    packages: list[PackageConfig] = []
    forbidden_edges: list[ForbiddenEdge] = []


class OwnershipEntry(BaseModel):
    """One ownership mapping entry (CODEOWNERS line plus review metadata)."""

    pattern: str
    owners: list[str] = []
    last_reviewed: date | None = None


class CodeOwnershipConfig(CheckConfig):
    """Code ownership check."""

    file_patterns: list[str] = [".*"]
    max_results: int = Field(2000, ge=1, le=10000)
    entries: list[OwnershipEntry] = []
    codeowners_file: Path | None = None
    stale_after_days: int = Field(365, ge=1)
    as_of: date | None = None  # Reference date for staleness; defaults to today


class TravisGoConfig(CheckConfig):
    """Go toolchain CI configuration check."""

    file_patterns: list[str] = [r"(^|/)\.travis\.yml$"]
    required_fields: list[str] = ["language", "go"]
    minimum_version: str = "1.13"
    deprecated_versions: list[str] = ["tip", "master", "stable"]
    recommended_version: str = "1.14.x"

    @field_validator("minimum_version")
    @classmethod
    def validate_minimum_version(cls, v: str) -> str:
        """Require a dotted numeric version."""
        parts = v.split(".")
        if not all(part.isdigit() for part in parts):
            raise ValueError(f"Minimum version must be numeric, e.g. 1.13: {v}")
        return v


class ChecksConfig(BaseModel):
    """Per-check configuration."""

    # Default scope for checks that do not list their own repositories
    repositories: list[str] = []
    import_star: ImportStarConfig = ImportStarConfig()
    no_inline_props: NoInlinePropsConfig = NoInlinePropsConfig()
    dependency_rules: DependencyRulesConfig = DependencyRulesConfig()
    code_ownership: CodeOwnershipConfig = CodeOwnershipConfig()
    travis_go: TravisGoConfig = TravisGoConfig()

    @field_validator("repositories")
    @classmethod
    def validate_repositories(cls, v: list[str]) -> list[str]:
        """Validate repository names and "org/*" wildcards."""
        from ..utils.security import validate_repo_pattern

        for repo in v:
            if not validate_repo_pattern(repo):
                raise ValueError(f"Invalid repository name: {repo}")
        return v


class CheckSearchConfig(BaseSettings):
    """Root configuration for check-search."""

    search: SearchConfig = SearchConfig()
    checks: ChecksConfig = ChecksConfig()
    logging: LoggingConfig = LoggingConfig()
    retry: RetryConfig = RetryConfig()

    model_config = SettingsConfigDict(
        env_prefix="CHECK_SEARCH_",
        env_file=".env",
        env_nested_delimiter="__",
    )
