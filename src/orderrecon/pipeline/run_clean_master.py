"""Command-line entry point for the Clean-Master build and its maintenance tools.

Subcommands:
- build           run or resume the build (one bounded slice per invocation)
- reset           forget the in-progress build and clear the canonical table
- backfill-dates  fill blank canonical order dates from the raw stores
- dedupe          drop duplicate (order, line item) rows from both raw stores
- purge-banned    remove canonical rows whose customer is banned now
- diagnose        print data coverage and exclusion reports

Exit codes: 0 success (including a paused build), 1 configuration error,
2 lock timeout.
"""
from __future__ import annotations

import argparse
import logging
from typing import Dict, List, Optional

from ..backfill import backfill_order_dates
from ..clean_master import CleanMasterBuilder
from ..common.config_validator import AppConfig, load_and_validate_config
from ..common.errors import BuildLockTimeout, ConfigurationError
from ..diagnostics import data_coverage_report, exclusion_report
from ..exclusions.banned_list import BannedListCache
from ..ingestion_utils import LOGGER_NAME, load_config
from ..logging_utils import (
    get_event_log,
    get_logger,
    get_user_logger,
    end_phase_timer,
    log_error,
    log_system_event,
    start_phase_timer,
)
from ..maintenance import deduplicate_raw_store, purge_banned_from_canonical, reset_build_state
from ..standards.schemas import CLEAN_HEADERS, SHOPIFY_SCHEMA, SQUARESPACE_SCHEMA, Platform
from ..storage.locking import build_lock
from ..storage.state_store import BuildStateRepository, PropertyStore
from ..storage.tables import Workbook


def _state_repo(config: AppConfig) -> BuildStateRepository:
    return BuildStateRepository(PropertyStore(config.paths.state_file), config.build.state_key)


def _locked(config: AppConfig):
    return build_lock(config.paths.lock_file, config.build.lock_timeout_seconds)


def run_build(config: AppConfig, user_logger: logging.Logger) -> str:
    result = CleanMasterBuilder.from_config(config, user_logger=user_logger).run()
    return result.message


def run_reset(config: AppConfig, user_logger: logging.Logger) -> str:
    workbook = Workbook(config.paths.workbook_dir)
    with _locked(config):
        reset_build_state(_state_repo(config), workbook.canonical_table(config.sheets.clean_output, CLEAN_HEADERS))
    message = f"Reset done. {config.sheets.clean_output} cleared; next build starts fresh."
    get_event_log(config).append(config.sheets.clean_output, message)
    user_logger.info(message)
    return message


def run_backfill(config: AppConfig, user_logger: logging.Logger) -> str:
    workbook = Workbook(config.paths.workbook_dir)
    with _locked(config):
        filled = backfill_order_dates(
            workbook.canonical_table(config.sheets.clean_output, CLEAN_HEADERS),
            {
                Platform.SHOPIFY: workbook.raw_store(config.sheets.platform_a),
                Platform.SQUARESPACE: workbook.raw_store(config.sheets.platform_b),
            },
            {Platform.SHOPIFY: SHOPIFY_SCHEMA, Platform.SQUARESPACE: SQUARESPACE_SCHEMA},
        )
    message = f"Backfill complete. Filled order_date for {filled} rows."
    get_event_log(config).append("Backfill Order Dates", message, filled)
    user_logger.info(message)
    return message


def run_dedupe(config: AppConfig, user_logger: logging.Logger) -> str:
    workbook = Workbook(config.paths.workbook_dir)
    event_log = get_event_log(config)
    parts: List[str] = []
    with _locked(config):
        for sheet, schema in ((config.sheets.platform_a, SHOPIFY_SCHEMA), (config.sheets.platform_b, SQUARESPACE_SCHEMA)):
            removed = deduplicate_raw_store(workbook, sheet, schema)
            event_log.append(f"{sheet} (Dedupe)", f"Removed {removed} duplicate rows", removed)
            parts.append(f"{sheet}: {removed}")
    message = "Dedupe complete. Removed duplicates: " + ", ".join(parts)
    user_logger.info(message)
    return message


def run_purge_banned(config: AppConfig, user_logger: logging.Logger) -> str:
    workbook = Workbook(config.paths.workbook_dir)
    banned = BannedListCache(config.paths.banned_list, config.exclusions.always_banned_domains).get()
    with _locked(config):
        removed = purge_banned_from_canonical(
            workbook.canonical_table(config.sheets.clean_output, CLEAN_HEADERS), banned
        )
    message = f"Purge complete. Removed {removed} banned rows from {config.sheets.clean_output}."
    get_event_log(config).append("Purge Banned", message, removed)
    user_logger.info(message)
    return message


def run_diagnose(config: AppConfig, user_logger: logging.Logger) -> str:
    workbook = Workbook(config.paths.workbook_dir)
    report = data_coverage_report(workbook, config.sheets) + "\n\n" + exclusion_report(workbook, config.sheets)
    user_logger.info(report)
    return report


COMMANDS = {
    "build": ("Clean-Master Build", run_build),
    "reset": ("Reset Build", run_reset),
    "backfill-dates": ("Backfill Order Dates", run_backfill),
    "dedupe": ("Dedupe Raw Stores", run_dedupe),
    "purge-banned": ("Purge Banned Rows", run_purge_banned),
    "diagnose": ("Diagnostics", run_diagnose),
}


def build_arg_parser() -> argparse.ArgumentParser:
    """Create an argument parser for the Clean-Master CLI."""

    parser = argparse.ArgumentParser(description="Build and maintain the All_Orders_Clean order table")
    parser.add_argument("--config", default="config.yaml", help="Path to configuration file")
    parser.add_argument("command", choices=sorted(COMMANDS), help="Operation to run")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns the process exit code."""

    args = build_arg_parser().parse_args(argv)
    config = load_and_validate_config(load_config(args.config))
    logger = get_logger(LOGGER_NAME, config)
    user_logger = get_user_logger(config)
    timing_dict: Dict[str, float] = {}

    label, runner = COMMANDS[args.command]
    log_system_event(logger, f"{label} started (config={args.config})")
    start_mark = start_phase_timer(label)
    try:
        runner(config, user_logger)
    except BuildLockTimeout as exc:
        log_error(logger, str(exc))
        user_logger.error(str(exc))
        return 2
    except ConfigurationError as exc:
        log_error(logger, str(exc))
        user_logger.error(f"Build error: {exc}")
        return 1
    end_phase_timer(label, start_mark, timing_dict, user_logger)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI guard
    raise SystemExit(main())
