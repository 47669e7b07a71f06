"""
CVXD Digitiser Configuration
============================

This module handles configuration loading for the digitiser.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    CVXD_THRESHOLD          -> frontend.threshold
    CVXD_FE_SLOPE           -> frontend.fe_slope
    CVXD_START_TIME         -> frontend.start_time
    CVXD_TIME_STEP          -> frontend.time_step
    CVXD_TICKS              -> frontend.ticks
    CVXD_CLUSTER_PER_SENSOR -> clustering.per_sensor
    CVXD_WORKERS            -> pipeline.workers
    CVXD_LOG_LEVEL          -> logging.level

Example:
    from cvxd_digitiser.config import settings

    print(settings.frontend.threshold)
    print(settings.layers[0].ladder_number)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from cvxd_digitiser.geometry.cellid import DEFAULT_ENCODING


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class DetectorConfig(BaseModel):
    """Vertex barrel identification and pixel pitch."""

    name: str = Field(default="VertexBarrel", description="Sub-detector name")
    barrel_id: int = Field(default=1, ge=0, description="ID of the vertex barrel")
    cell_id_encoding: str = Field(
        default=DEFAULT_ENCODING,
        description="Bit-field format of the sensor cell IDs",
    )
    pixel_size_x: float = Field(default=0.025, gt=0, description="Pixel pitch along x (mm)")
    pixel_size_y: float = Field(default=0.025, gt=0, description="Pixel pitch along y (mm)")
    sensor_type: str = Field(default="hk_base", description="Registered sensor type tag")


class LayerConfig(BaseModel):
    """Ladder layout of one barrel layer."""

    ladder_number: int = Field(default=4, ge=1, description="Ladders in the layer")
    ladder_length: float = Field(default=1.6, gt=0, description="Ladder length (mm)")
    ladder_width: float = Field(default=0.8, gt=0, description="Ladder width (mm)")
    thickness: float = Field(default=0.05, gt=0, description="Sensitive thickness (mm)")
    xsegment_number: int = Field(default=1, ge=1, description="Sensors across the width")
    ysegment_number: int = Field(default=2, ge=1, description="Sensors along the length")


class FrontEndConfig(BaseModel):
    """Front-end chip parameters."""

    threshold: float = Field(default=200.0, gt=0, description="Threshold (electrons)")
    fe_slope: float = Field(
        default=50.0,
        ge=0,
        description="Discharge slope (electrons per time unit)",
    )
    start_time: float = Field(default=0.0, description="Time of the first clock edge")
    time_step: float = Field(default=1.0, gt=0, description="Clock period")
    ticks: int = Field(default=32, ge=1, description="Clock ticks per event")


class ClusteringConfig(BaseModel):
    """Clustering and hit building options."""

    per_sensor: bool = Field(
        default=True,
        description="Cluster each sensor tile separately (False = whole ladder)",
    )
    store_fired_pixels: bool = Field(default=False, description="Keep fired pixels in hits")
    tan_lorentz_x: float = Field(default=0.0, description="Tangent of Lorentz angle along x")
    tan_lorentz_y: float = Field(default=0.0, description="Tangent of Lorentz angle along y")


class PipelineConfig(BaseModel):
    """Event pipeline configuration."""

    workers: int = Field(
        default=1,
        ge=1,
        description="Sensors digitised concurrently (1 = sequential)",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the CVXD digitiser.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    layers: List[LayerConfig] = Field(
        default_factory=lambda: [LayerConfig()],
        min_length=1,
    )
    frontend: FrontEndConfig = Field(default_factory=FrontEndConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration

    Raises:
        pydantic.ValidationError: If a value is out of range
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    # Build settings object
    settings = Settings.model_validate(config_data)

    return settings


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Front-end settings
    if env_thr := os.environ.get("CVXD_THRESHOLD"):
        config_data.setdefault("frontend", {})["threshold"] = float(env_thr)
    if env_slope := os.environ.get("CVXD_FE_SLOPE"):
        config_data.setdefault("frontend", {})["fe_slope"] = float(env_slope)
    if env_start := os.environ.get("CVXD_START_TIME"):
        config_data.setdefault("frontend", {})["start_time"] = float(env_start)
    if env_step := os.environ.get("CVXD_TIME_STEP"):
        config_data.setdefault("frontend", {})["time_step"] = float(env_step)
    if env_ticks := os.environ.get("CVXD_TICKS"):
        config_data.setdefault("frontend", {})["ticks"] = int(env_ticks)

    # Clustering policy
    if env_policy := os.environ.get("CVXD_CLUSTER_PER_SENSOR"):
        config_data.setdefault("clustering", {})["per_sensor"] = (
            env_policy.strip().lower() in ("1", "true", "yes", "on")
        )

    # Pipeline settings
    if env_workers := os.environ.get("CVXD_WORKERS"):
        config_data.setdefault("pipeline", {})["workers"] = int(env_workers)

    # Logging settings
    if env_log := os.environ.get("CVXD_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
