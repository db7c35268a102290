"""YAML configuration loader with dataclass mapping."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


def _default_lc_map() -> dict[str, int]:
    return {
        "none": 0,
        "developed": 1,
        "cropland": 2,
        "grass": 3,
        "tree": 4,
        "water": 5,
        "wetland": 6,
        "snow": 7,
        "barren": 8,
    }


@dataclass(frozen=True)
class ClassConfig:
    # Index-aligned with each prediction's probability vector
    lc_list: tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6, 7, 8)
    lc_map: dict[str, int] = field(default_factory=_default_lc_map)

    @property
    def none(self) -> int:
        return self.lc_map["none"]

    @property
    def grass(self) -> int:
        return self.lc_map["grass"]

    @property
    def tree(self) -> int:
        return self.lc_map["tree"]


@dataclass(frozen=True)
class ConfidenceConfig:
    lcc_growth: int = 151
    lcc_decline: int = 152
    lcc_nomodel: int = 201
    lcc_forwards: int = 202
    lcc_samelc: int = 211
    lcc_difflc: int = 212
    lcc_back: int = 213
    lcc_afterbr: int = 214
    scale_min: float = 0.0
    scale_max: float = 100.0


@dataclass(frozen=True)
class ProductConfig:
    stability_begin: str = "1982-01-01"
    fill_samelc: bool = True
    fill_difflc: bool = True
    failure_policy: str = "abort"   # "abort" or "record"


@dataclass(frozen=True)
class PipelineConfig:
    worker_count: int = 4
    retry_delays: tuple[float, ...] = (1.0, 5.0, 15.0)


@dataclass(frozen=True)
class StorageConfig:
    backend: str = "file"           # "file" or "s3"
    root: str = "data"
    bucket: str = ""
    prefix: str = ""
    region: str = ""
    endpoint_url: str = ""


@dataclass(frozen=True)
class LoggingConfig:
    log_dir: str = "data/logs"
    level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
    classes: ClassConfig = field(default_factory=ClassConfig)
    confidence: ConfidenceConfig = field(default_factory=ConfidenceConfig)
    products: ProductConfig = field(default_factory=ProductConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _build(cls: type, data: dict) -> object:
    """Build a dataclass instance from a dictionary, ignoring unknown keys."""
    known = {f.name for f in dataclasses.fields(cls)}
    values = {}
    for key, value in data.items():
        if key not in known:
            continue
        # YAML yields lists; sequence fields are stored as tuples
        if isinstance(value, list):
            value = tuple(value)
        values[key] = value
    return cls(**values)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    if path is None:
        path = os.environ.get("GAIA_CONFIG", "config/default.yaml")

    raw: dict = {}
    path = Path(path)
    if path.exists():
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}

    section_map = {
        "classes": ClassConfig,
        "confidence": ConfidenceConfig,
        "products": ProductConfig,
        "pipeline": PipelineConfig,
        "storage": StorageConfig,
        "logging": LoggingConfig,
    }

    sections = {}
    for section_name, dc_class in section_map.items():
        section = raw.get(section_name)
        if isinstance(section, dict):
            sections[section_name] = _build(dc_class, section)
    config = AppConfig(**sections)

    # Environment variable overrides
    env_workers = os.environ.get("GAIA_WORKERS")
    if env_workers:
        config = with_overrides(config, "pipeline", worker_count=int(env_workers))

    env_root = os.environ.get("GAIA_STORAGE_ROOT")
    if env_root:
        config = with_overrides(config, "storage", root=env_root)

    env_bucket = os.environ.get("GAIA_BUCKET")
    if env_bucket:
        config = with_overrides(config, "storage", backend="s3", bucket=env_bucket)

    return config


def with_overrides(config: AppConfig, section: str, **kwargs: object) -> AppConfig:
    """Return a copy of config with fields of one section replaced."""
    updated = dataclasses.replace(getattr(config, section), **kwargs)
    return dataclasses.replace(config, **{section: updated})
