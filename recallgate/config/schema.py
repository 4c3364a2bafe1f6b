"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetrievalConfig(BaseModel):
    """Per-turn retrieval limits handed to the vector backend."""
    top_k: int = Field(default=5, ge=1, le=100, description="Chunks requested per collection")
    threshold: float = Field(default=0.25, ge=0.0, le=1.0, description="Minimum similarity from the backend")
    max_results: int = Field(default=20, ge=1, le=500, description="Chunks kept after merging collections")


class ScanConfig(BaseModel):
    """Bounds on how much conversation the engine looks at."""
    max_messages: int = Field(default=200, ge=1, le=10000, description="Most recent messages kept in a snapshot")


class PatternConfig(BaseModel):
    """Regex safety limits for triggers and pattern rules."""
    max_regex_length: int = Field(default=1000, ge=1)
    check_redos: bool = True


class EngineConfig(BaseSettings):
    """Root configuration for recallgate."""
    model_config = SettingsConfigDict(
        env_prefix="RECALLGATE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    data_dir: str = "~/.recallgate"
    policy_store: str = "policies.json"
    log_level: str = "INFO"
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)

    @property
    def data_path(self) -> Path:
        """Get expanded data directory."""
        return Path(self.data_dir).expanduser()

    @property
    def policy_store_path(self) -> Path:
        """Get the policy metadata file path."""
        return self.data_path / self.policy_store
