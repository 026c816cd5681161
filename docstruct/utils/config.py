"""Configuration for the document structuring engine.

Every numeric heuristic the engine relies on (row tolerance, table
likelihood threshold, header merge length, scoring points) lives here so it
can be recalibrated against a document corpus without touching code.
Values are loaded from YAML and validated with pydantic.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ClusteringConfig(BaseModel):
    """Tunables for grouping positioned fragments into rows."""

    row_tolerance: float = Field(default=15.0, gt=0)
    adaptive_tolerance: bool = False
    tolerance_height_ratio: float = Field(default=0.75, gt=0)
    cell_gap: float = Field(default=12.0, ge=0)
    column_tolerance: float = Field(default=20.0, ge=0)


class TokenizerConfig(BaseModel):
    """Tunables for the delimiter-based line tokenizer."""

    table_threshold: float = 0.4
    min_consistency: float = 0.5
    min_lines: int = 2
    consistency_weight: float = 0.40
    delimiter_weight: float = 0.30
    numeric_weight: float = 0.15
    header_weight: float = 0.15
    header_max_segment_length: int = 20


class HeaderConfig(BaseModel):
    """Tunables for header detection and multi-line header merging.

    ``min_header_hits`` counts distinct canonical columns, and only the
    first ``search_window`` rows are considered as header anchors.
    """

    merge_length_threshold: int = 8
    max_header_rows: int = Field(default=3, ge=1, le=3)
    min_header_hits: int = 2
    search_window: int = Field(default=10, ge=1)


class ClassifierConfig(BaseModel):
    """Tunables for row classification."""

    min_data_cells: int = 3
    min_description_length: int = 4


class ScoringConfig(BaseModel):
    """Point values used by the confidence scorer."""

    field_points: int = 10
    bonus_points: int = 5
    min_product_length: int = 6


class ClassificationConfig(BaseModel):
    """Document type templates used when the type is not given.

    ``templates`` holds the parsed template file; it is filled by
    :func:`load_config` and left empty to use the built-in templates.
    """

    templates_path: str = "templates.yaml"
    templates: dict[str, Any] | None = None


class ValidationConfig(BaseModel):
    """Advisory validation rules for domain documents.

    ``rules`` holds the parsed rules file, filled by :func:`load_config`.
    """

    rules_path: str = "validation_rules.yaml"
    rules: dict[str, Any] | None = None


class AppConfig(BaseModel):
    """Top-level engine configuration."""

    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    tokenizer: TokenizerConfig = Field(default_factory=TokenizerConfig)
    header: HeaderConfig = Field(default_factory=HeaderConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    classification: ClassificationConfig = Field(
        default_factory=ClassificationConfig
    )
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    log_level: str = "INFO"


def load_yaml_mapping(path: Path) -> dict[str, Any] | None:
    """Read a YAML file holding a mapping.

    Returns:
        The parsed mapping, or ``None`` when the file is missing or empty.

    Raises:
        ValueError: If the file does not hold a mapping.
    """
    if not path.exists():
        return None
    with open(path) as f:
        data = yaml.safe_load(f)
    if not data:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return data


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration and the files it references.

    The template and validation rule files named in the configuration are
    resolved against the config file's directory and parsed here, so the
    engine itself never touches the filesystem.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated engine configuration. Defaults are used when the file
        does not exist or is empty.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if not path.exists():
        logger.info("No config file found at %s, using defaults", path)
        return AppConfig()

    logger.info("Loading configuration from %s", path)
    config = AppConfig(**(load_yaml_mapping(path) or {}))

    base = path.parent
    templates_file = base / config.classification.templates_path
    if config.classification.templates is None:
        config.classification.templates = load_yaml_mapping(templates_file)
    rules_file = base / config.validation.rules_path
    if config.validation.rules is None:
        config.validation.rules = load_yaml_mapping(rules_file)
    logger.debug("Loaded templates from %s, rules from %s", templates_file, rules_file)
    return config
