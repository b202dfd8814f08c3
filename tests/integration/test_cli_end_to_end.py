from pathlib import Path

import pandas as pd
import yaml

from conftest import make_config, seed_workbook, shopify_row, squarespace_row

from orderrecon.pipeline.run_clean_master import build_arg_parser, main
from orderrecon.storage.locking import build_lock


def write_config(tmp_path: Path) -> Path:
    config = make_config(tmp_path, banned=["blocked@example.com"], export_xlsx=True)
    seed_workbook(
        Path(config.paths.workbook_dir),
        [
            shopify_row("1001", "Title Transfer", **{"Processed At (Local)": "", "Created At": ""}),
            shopify_row("1001", "Mirror Kit"),
            shopify_row("1002", "Handlebar Grips", **{"Customer Email": "blocked@example.com"}),
        ],
        [
            squarespace_row("S1", "Registration Package", qty="1"),
            squarespace_row("S1", "Plate Frame", qty="3"),
        ],
    )
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config.model_dump()), encoding="utf-8")
    return path


def test_parser_lists_subcommands():
    args = build_arg_parser().parse_args(["backfill-dates"])
    assert args.command == "backfill-dates"
    assert args.config == "config.yaml"


def test_full_cli_cycle(tmp_path: Path):
    config_path = write_config(tmp_path)
    workbook = tmp_path / "workbook"

    assert main(["--config", str(config_path), "build"]) == 0
    out = pd.read_csv(workbook / "All_Orders_Clean.csv", dtype=str, keep_default_na=False)
    assert out["order_id"].tolist() == ["1001", "1001", "S1", "S1"]
    assert out["order_date"].iloc[0] == ""
    assert (workbook / "All_Orders_Clean.xlsx").exists()
    assert not (workbook / ".script_properties.json").exists() or "CLEAN_MASTER_BUILD_STATE_V2" not in (
        workbook / ".script_properties.json"
    ).read_text(encoding="utf-8")

    assert main(["--config", str(config_path), "backfill-dates"]) == 0
    out = pd.read_csv(workbook / "All_Orders_Clean.csv", dtype=str, keep_default_na=False)
    assert out["order_date"].iloc[0] == "2025-03-01 09:30:00"

    assert main(["--config", str(config_path), "diagnose"]) == 0
    assert main(["--config", str(config_path), "purge-banned"]) == 0
    assert main(["--config", str(config_path), "dedupe"]) == 1

    log = pd.read_csv(workbook / "Log.csv", dtype=str, keep_default_na=False)
    assert "Backfill Order Dates" in log["Source"].tolist()
    assert (tmp_path / "logs" / "system.log").exists()

    assert main(["--config", str(config_path), "reset"]) == 0
    assert pd.read_csv(workbook / "All_Orders_Clean.csv", dtype=str).empty


def test_cli_exit_codes_for_lock_and_missing_store(tmp_path: Path):
    config_path = write_config(tmp_path)
    workbook = tmp_path / "workbook"

    with build_lock(workbook / ".clean_master.lock", timeout_seconds=0):
        assert main(["--config", str(config_path), "build"]) == 2

    (workbook / "Squarespace Orders.csv").unlink()
    assert main(["--config", str(config_path), "build"]) == 1
