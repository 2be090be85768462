"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class DelimiterOption(BaseModel):
    """A candidate column separator for uploaded tables."""

    char: str
    name: str


class IngestConfig(BaseModel):
    """Configuration for bank statement table ingestion."""

    encoding: str = "utf-8-sig"
    fallback_encoding: str = "latin-1"
    delimiters: list[DelimiterOption] = Field(
        default_factory=lambda: [
            DelimiterOption(char=",", name="Comma"),
            DelimiterOption(char=";", name="Semicolon"),
            DelimiterOption(char="\t", name="Tab"),
            DelimiterOption(char="|", name="Pipe"),
        ]
    )
    # Canonical fields are resolved in this order; a header claimed by an
    # earlier field is not offered to later ones.
    header_keywords: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "date": ["date", "posted", "posting", "txn date"],
            "description": [
                "description",
                "details",
                "narrative",
                "memo",
                "payee",
                "merchant",
                "vendor",
                "particulars",
                "name",
            ],
            "debit": ["debit", "withdrawal", "money out", "paid out"],
            "credit": ["credit", "deposit", "money in", "paid in"],
            "balance": ["balance"],
            "amount": ["amount", "value", "total", "sum"],
            "account": ["account", "acct"],
            "reference": ["reference", "ref", "transaction id", "check", "cheque", "slip", "id", "number"],
        }
    )
    income_keywords: list[str] = Field(
        default_factory=lambda: [
            "deposit",
            "income",
            "salary",
            "interest",
            "refund",
            "credit",
            "payment received",
        ]
    )
    currency_symbols: str = "$£€¥₹₽¢₩₪₿"


class DateStep(BaseModel):
    """Date sub-score awarded when the day difference is at most max_days."""

    max_days: int
    score: float


class MatchWeights(BaseModel):
    """Relative weight of each sub-score in the confidence total."""

    amount: float = 0.5
    date: float = 0.3
    text: float = 0.2

    @model_validator(mode="after")
    def _check_total(self) -> "MatchWeights":
        total = round(self.amount + self.date + self.text, 6)
        if total != 1.0:
            raise ValueError(f"match weights must sum to 1.0, got {total}")
        return self


class MatchTypeBands(BaseModel):
    """Minimum score for each automatic match label."""

    exact: float = 90
    probable: float = 70
    possible: float = 50


class MatchingConfig(BaseModel):
    """Configuration for the match scorer and orchestrator."""

    auto_match_threshold: float = 70
    weights: MatchWeights = Field(default_factory=MatchWeights)
    date_steps: list[DateStep] = Field(
        default_factory=lambda: [
            DateStep(max_days=0, score=100),
            DateStep(max_days=1, score=90),
            DateStep(max_days=2, score=75),
            DateStep(max_days=3, score=60),
            DateStep(max_days=7, score=40),
        ]
    )
    match_type_bands: MatchTypeBands = Field(default_factory=MatchTypeBands)
    text_containment_score: float = 80
    text_partial_cap: float = 70
    min_token_length: int = 3

    @model_validator(mode="after")
    def _check_threshold(self) -> "MatchingConfig":
        if not 0 <= self.auto_match_threshold <= 100:
            raise ValueError("auto_match_threshold must be between 0 and 100")
        self.date_steps = sorted(self.date_steps, key=lambda s: s.max_days)
        return self


class StorageConfig(BaseModel):
    """Configuration for the persistence backend."""

    database_url: str = "sqlite:///receipt_recon.db"
    echo: bool = False


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_report_{date}_{time}.xlsx"
    include_timestamp: bool = True


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    matched: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Matched"))
    receipt_only: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Receipt Only"))
    bank_only: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Bank Only"))
    history: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Match History"))


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    ingest: IngestConfig = Field(default_factory=IngestConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return ReconConfig().model_dump(exclude={"config_file_path"})


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is unreadable or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Receipt / Bank Statement Reconciliation Configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.safe_dump(
        config_dict, default_flow_style=False, sort_keys=False, allow_unicode=True
    )

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
