"""
Sales Star-Schema ETL
Centralized Configuration Management

Pydantic settings with environment variable support for the pipeline,
storage locations, logging and data quality switches.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    """Pipeline Execution Configuration"""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    max_workers: int = Field(default=4, ge=1, description="Concurrent fact resolution workers")
    chunk_size: int = Field(default=10000, ge=1, description="Filtered rows per fact resolution chunk")
    parallel_dimension_builds: bool = Field(default=True, description="Build dimensions concurrently")
    store_backend: str = Field(default="parquet", description="Dataset store: parquet or memory")
    unresolved_sample_size: int = Field(default=100, ge=0, description="Unresolved references kept per run")

    @field_validator("store_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate store backend value"""
        allowed = ["parquet", "memory"]
        if v.lower() not in allowed:
            raise ValueError(f"Store backend must be one of: {allowed}")
        return v.lower()


class DataLakeSettings(BaseSettings):
    """Data Lake Storage Configuration"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    raw_path: str = Field(default="./data/raw", description="Raw data zone path")
    warehouse_path: str = Field(default="./data/warehouse", description="Published star schema path")

    default_format: str = Field(default="csv", description="Default raw file format")


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")

    enable_metrics: bool = Field(default=True, description="Record Prometheus metrics")


class DataQualitySettings(BaseSettings):
    """Data Quality Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    enable_data_quality_checks: bool = Field(
        default=True,
        alias="ENABLE_DATA_QUALITY_CHECKS",
        description="Profile staged data with the validation suite",
    )


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="sales-star", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    data_lake: DataLakeSettings = Field(default_factory=DataLakeSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    data_quality: DataQualitySettings = Field(default_factory=DataQualitySettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Convenience function for accessing settings
settings = get_settings()
