# src/meshusage/config/settings.py
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from enum import Enum
from dotenv import load_dotenv

# Load .env file explicitly
load_dotenv()


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class OutputFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"
    YML = "yml"


class KubernetesSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="K8S_")

    kubeconfig_path: Optional[str] = Field(None, description="Path to kubeconfig file")
    context: Optional[str] = Field(None, description="Kubernetes context to use")
    connection_pool_size: int = Field(100, ge=1, description="HTTP connection pool size shared by all workers")


class CollectionSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="COLLECTION_")

    hide_names: bool = Field(True, description="Obfuscate cluster, namespace and node names")
    continue_processing: bool = Field(False, description="Resume from an existing report file")
    max_processors: int = Field(0, ge=0, description="Processor count override; 0 uses every CPU")
    namespace_concurrency_multiplier: int = Field(4, ge=1, description="Namespace workers per processor")
    node_concurrency_multiplier: int = Field(2, ge=1, description="Node workers per processor")
    timeout_seconds: float = Field(1800, gt=0, description="Deadline for the whole collection")
    metrics_retry_attempts: int = Field(3, ge=1, description="Attempts per metrics call")
    metrics_retry_base_delay: float = Field(0.5, ge=0, description="First backoff delay in seconds")
    shutdown_grace_seconds: float = Field(10, gt=0, description="Time allowed to stop after an interrupt")


class OutputSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OUTPUT_")

    directory: str = Field(".", description="Directory the report is written to")
    format: OutputFormat = Field(OutputFormat.JSON, description="Report format")
    file_prefix: str = Field("", description="Report file name without extension; defaults to the cluster name")

    @field_validator('format', mode='before')
    @classmethod
    def validate_format(cls, v):
        if isinstance(v, str):
            return OutputFormat(v.lower())
        return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    debug: bool = Field(False, description="Debug mode")
    log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
    no_progress: bool = Field(False, description="Disable the progress bar")

    kubernetes: KubernetesSettings = Field(default_factory=lambda: KubernetesSettings())
    collection: CollectionSettings = Field(default_factory=lambda: CollectionSettings())
    output: OutputSettings = Field(default_factory=lambda: OutputSettings())

    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v):
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @classmethod
    def create_from_env(cls) -> "Settings":
        """Create settings instance from environment variables."""
        return cls()
