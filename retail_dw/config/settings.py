"""
Retail Data Warehouse Analytics
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety.
"""

from datetime import date
from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeneratorSettings(BaseSettings):
    """Synthetic star-schema dataset configuration"""

    model_config = SettingsConfigDict(env_prefix="GENERATOR_")

    seed: int = Field(default=2024, description="Random seed for the dataset")
    n_clients: int = Field(default=300, gt=0, description="Number of clients")
    n_products: int = Field(default=50, gt=0, description="Number of products")
    n_stores: int = Field(default=5, gt=0, le=5, description="Number of stores")
    n_transactions: int = Field(default=2000, gt=0, description="Number of sales")
    start_date: date = Field(default=date(2023, 1, 1), description="First calendar day")
    end_date: date = Field(default=date(2024, 12, 31), description="Last calendar day")

    @model_validator(mode="after")
    def validate_date_range(self) -> "GeneratorSettings":
        """Calendar must span at least one day"""
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class WarehouseSettings(BaseSettings):
    """Warehouse consolidation configuration"""

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_")

    missing_reference_policy: str = Field(
        default="fail",
        description="What to do with sales referencing unknown keys: fail or drop",
    )

    @field_validator("missing_reference_policy")
    @classmethod
    def validate_policy(cls, v: str) -> str:
        allowed = ["fail", "drop"]
        if v.lower() not in allowed:
            raise ValueError(f"Missing reference policy must be one of: {allowed}")
        return v.lower()


class ClusteringSettings(BaseSettings):
    """K-means client segmentation configuration"""

    model_config = SettingsConfigDict(env_prefix="CLUSTERING_")

    n_clusters: int = Field(default=3, gt=0, description="Number of clusters")
    n_init: int = Field(default=25, gt=0, description="Random restarts")
    max_iter: int = Field(default=100, gt=0, description="Lloyd iteration cap per restart")
    seed: int = Field(default=2024, description="Seed for centroid initialization")


class AnomalySettings(BaseSettings):
    """Transaction anomaly detection configuration"""

    model_config = SettingsConfigDict(env_prefix="ANOMALY_")

    z_threshold: float = Field(default=3.0, gt=0, description="Z-score threshold")


class ExportSettings(BaseSettings):
    """Result export configuration"""

    model_config = SettingsConfigDict(env_prefix="EXPORT_")

    enabled: bool = Field(default=True, description="Write result tables")
    export_dir: str = Field(default="./exports", description="Export directory")
    file_format: str = Field(default="csv", description="Export format: csv or parquet")

    @field_validator("file_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        allowed = ["csv", "parquet"]
        if v.lower() not in allowed:
            raise ValueError(f"Export format must be one of: {allowed}")
        return v.lower()


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="text", alias="LOG_FORMAT", description="Log format: json or text")


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
    app_name: str = Field(default="retail-dw-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    generator: GeneratorSettings = Field(default_factory=GeneratorSettings)
    warehouse: WarehouseSettings = Field(default_factory=WarehouseSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    anomaly: AnomalySettings = Field(default_factory=AnomalySettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

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
