"""
Pydantic model for server configuration.
Provides robust validation for all settings.
"""

import tempfile

from pydantic import BaseModel, Field, field_validator

DEFAULT_PORT = 3000
DEFAULT_JOB_TTL_SECONDS = 10 * 60
DEFAULT_KILL_GRACE_SECONDS = 2.0
DEFAULT_CHUNK_SIZE = 262144  # 256 KB


class ServerConfig(BaseModel):
    """A validated configuration model for the download server."""

    # Network
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    # Metadata resolver
    yt_api_key: str = Field(default="", repr=False)

    # Retrieval tool
    ytdlp_binary: str = "yt-dlp"
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS

    # Storage and streaming
    temp_root: str = Field(default_factory=tempfile.gettempdir)
    job_ttl_seconds: int = DEFAULT_JOB_TTL_SECONDS
    zip_compression_level: int = 9
    chunk_size: int = DEFAULT_CHUNK_SIZE

    # Logging
    log_dir: str = ""

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535.")
        return v

    @field_validator("ytdlp_binary")
    @classmethod
    def validate_binary(cls, v: str) -> str:
        if not v:
            raise ValueError("The yt-dlp binary path cannot be empty.")
        return v

    @field_validator("job_ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Job TTL must be a positive number of seconds.")
        return v

    @field_validator("kill_grace_seconds")
    @classmethod
    def validate_grace(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Kill grace period cannot be negative.")
        return v

    @field_validator("zip_compression_level")
    @classmethod
    def validate_compression(cls, v: int) -> int:
        if v < 0 or v > 9:
            raise ValueError("ZIP compression level must be between 0 and 9.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Keeps streaming chunks between 4 KB and 4 MB."""
        if v < 4096 or v > 4194304:
            raise ValueError("Chunk size must be between 4096 and 4194304 bytes.")
        return v

    @property
    def has_api_key(self) -> bool:
        return bool(self.yt_api_key)

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are accepted in the INI file."""
        return set(cls.model_fields)
