"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

DEFAULT_SEGMENT_SUFFIX = ".ts"
DEFAULT_OUTPUT_EXTENSION = "ts"


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    # Storage
    workspace: str

    # Playlist Handling
    segment_suffix: str = DEFAULT_SEGMENT_SUFFIX
    output_extension: str = DEFAULT_OUTPUT_EXTENSION

    # Download Settings
    progress_interval: float = 1.0
    probe_concurrency: int = 8
    segment_retry_limit: int | None = None
    segment_retry_delay: float = 0.0
    chunk_size: int = 131072  # 128 KB
    request_timeout: float = 90.0

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)
    source_urls: list[str] = Field(default_factory=list, repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("workspace")
    @classmethod
    def validate_workspace(cls, v: str) -> str:
        if not v:
            raise ValueError("Workspace directory cannot be empty.")
        return v

    @field_validator("segment_suffix")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        """Ensures the suffix is non-empty and starts with a dot."""
        if not v:
            raise ValueError("Segment suffix cannot be empty.")
        return v if v.startswith(".") else f".{v}"

    @field_validator("output_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        v = v.lstrip(".")
        if not v or "/" in v or "\\" in v:
            raise ValueError(f"Invalid output extension: '{v}'.")
        return v

    @field_validator("progress_interval", "request_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Intervals and timeouts must be positive.")
        return v

    @field_validator("probe_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent size probes."""
        if v < 1 or v > 64:
            raise ValueError("Probe concurrency must be between 1 and 64.")
        return v

    @field_validator("segment_retry_limit")
    @classmethod
    def validate_retry_limit(cls, v: int | None) -> int | None:
        # 0 and negative values mean "retry forever", same as None
        if v is not None and v <= 0:
            return None
        return v

    @field_validator("segment_retry_delay")
    @classmethod
    def validate_retry_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Retry delay cannot be negative.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v < 1024:
            raise ValueError("Chunk size must be at least 1024 bytes.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "source_urls"}
        return {key for key in cls.model_fields if key not in internal_fields}
