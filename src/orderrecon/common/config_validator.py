"""Configuration validation models using Pydantic."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator

from ..exclusions.products import DEFAULT_BANNED_PRODUCT_KEYWORDS


class PathsConfig(BaseModel):
    """Filesystem locations of the workbook and its side stores."""

    workbook_dir: str = Field("workbook", description="Directory holding one file per sheet")
    state_file: str = Field("workbook/.script_properties.json", description="Persisted key/value store")
    lock_file: str = Field("workbook/.clean_master.lock", description="Single-writer lock file")
    banned_list: str | None = Field(None, description="CSV/XLSX whose first column lists banned emails/domains")
    logs_dir: str = Field("logs", description="Directory for system/user/event logs")


class SheetsConfig(BaseModel):
    """Sheet names inside the workbook directory."""

    platform_a: str = Field("Shopify Orders", description="Raw Platform A order lines")
    platform_b: str = Field("Squarespace Orders", description="Raw Platform B order lines")
    clean_output: str = Field("All_Orders_Clean", description="Canonical output table")
    event_log: str = Field("Log", description="Append-only event/progress log")


class BuildConfig(BaseModel):
    """Chunking, time budget and locking for the Clean-Master build."""

    chunk_rows: int = Field(1500, ge=1, description="Raw rows read per chunk")
    soft_limit_seconds: float = Field(5.3 * 60, gt=0, description="Cooperative time budget per invocation")
    lock_timeout_seconds: float = Field(20.0, ge=0, description="Bounded wait for the build lock")
    state_key: str = Field("CLEAN_MASTER_BUILD_STATE_V2", min_length=1, description="Key of the persisted state")
    export_xlsx: bool = Field(True, description="Write a formatted .xlsx copy of the canonical table on completion")


class RenewalRuleConfig(BaseModel):
    """Platform B duplicate-renewal exclusion (AND across groups, OR inside a group)."""

    enabled: bool = True
    year: int = Field(2026, ge=1900, le=9999)
    keyword_groups: List[List[str]] = Field(
        default_factory=lambda: [["montana", "mt"], ["llc"], ["renew"]],
        description="Every group must contribute at least one substring hit",
    )

    @field_validator("keyword_groups")
    @classmethod
    def validate_groups(cls, v):
        """Reject empty groups, which would make the rule vacuous."""
        cleaned = [[str(kw).strip().lower() for kw in group if str(kw).strip()] for group in v]
        if any(not group for group in cleaned):
            raise ValueError("keyword_groups must not contain empty groups")
        return cleaned


class ExclusionsConfig(BaseModel):
    """Exclusion rules. The product keyword list is sensitive configuration."""

    banned_product_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_BANNED_PRODUCT_KEYWORDS))
    always_banned_domains: List[str] = Field(default_factory=list)
    renewal_rule: RenewalRuleConfig = Field(default_factory=RenewalRuleConfig)

    @field_validator("banned_product_keywords", "always_banned_domains")
    @classmethod
    def strip_blank_entries(cls, v):
        return [str(x).strip() for x in v if str(x).strip()]


class LoggingConfig(BaseModel):
    level: str = Field("INFO", description="Root level for the system logger")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        level = str(v).upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown logging level: {v}")
        return level


class AppConfig(BaseModel):
    """Complete configuration for the order-reconciliation tooling."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    exclusions: ExclusionsConfig = Field(default_factory=ExclusionsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_and_validate_config(config_dict: dict | None) -> AppConfig:
    """
    Validate a raw configuration mapping.

    Every section is optional; missing keys fall back to defaults. A legacy
    top-level ``banned_product_keywords`` list is moved under ``exclusions``.

    Args:
        config_dict: Dictionary loaded from YAML (may be None for an empty file)

    Returns:
        Validated AppConfig object

    Raises:
        ValidationError: If configuration is invalid
    """
    raw = dict(config_dict or {})
    if "banned_product_keywords" in raw:
        exclusions = dict(raw.get("exclusions") or {})
        exclusions.setdefault("banned_product_keywords", raw.pop("banned_product_keywords"))
        raw["exclusions"] = exclusions
    return AppConfig(**raw)
