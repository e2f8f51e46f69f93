#!/usr/bin/env python3
"""
Smoke test: env config parsing and logging setup.

Checks:
- env values are stripped of whitespace and quotes
- money amounts keep int when integral and reject negatives
- unknown storage backend is rejected
- load_config picks up DATA_DIR / STORAGE_BACKEND / amounts from env
- configure_logging writes to a rotating file in LOG_DIR
- unusable LOG_DIR or unknown LOG_LEVEL fall back to console-only INFO logging

Run:
  python3 scripts/smoke_config_logging.py
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]

ENV_KEYS = (
    "DATA_DIR",
    "STORAGE_BACKEND",
    "DB_PATH",
    "INVITATION_COST",
    "CONVERSION_REWARD",
    "API_PORT",
    "LOG_DIR",
    "LOG_FILE_NAME",
    "LOG_LEVEL",
)


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


def _run_checks(tmpdir: Path) -> None:
    from config import (  # noqa: WPS433
        STORAGE_BACKEND_SQLITE,
        clean_env,
        load_config,
        parse_amount,
        parse_storage_backend,
    )
    from logging_setup import configure_logging  # noqa: WPS433

    _assert(clean_env('  "quoted"  ') == "quoted", "quotes and whitespace stripped")
    _assert(clean_env(None, "fallback") == "fallback", "None -> default")
    _assert(clean_env("   ", "fallback") == "fallback", "blank -> default")

    _assert(parse_amount("1", 5) == 1 and isinstance(parse_amount("1", 5), int), "integral amount stays int")
    _assert(parse_amount("2.5", 5) == 2.5, "fractional amount kept")
    _assert(parse_amount(None, 10) == 10, "missing amount -> default")
    try:
        parse_amount("-1", 0)
    except ValueError:
        pass
    else:
        raise AssertionError("negative amount must be rejected")

    _assert(parse_storage_backend(" SQLITE ") == STORAGE_BACKEND_SQLITE, "backend is case-insensitive")
    _assert(parse_storage_backend(None) == "json", "json is the default backend")
    try:
        parse_storage_backend("redis")
    except ValueError:
        pass
    else:
        raise AssertionError("unknown backend must be rejected")

    os.environ["DATA_DIR"] = str(tmpdir / "data")
    os.environ["STORAGE_BACKEND"] = "sqlite"
    os.environ.pop("DB_PATH", None)
    os.environ["INVITATION_COST"] = '"2"'
    os.environ["CONVERSION_REWARD"] = "12.5"
    os.environ["API_PORT"] = "9090"
    cfg = load_config()
    _assert(cfg.data_dir == tmpdir / "data", f"data_dir: {cfg.data_dir}")
    _assert(cfg.db_path == tmpdir / "data" / "directory.db", f"db_path defaults under data_dir: {cfg.db_path}")
    _assert(cfg.storage_backend == "sqlite", f"backend: {cfg.storage_backend}")
    _assert(cfg.invitation_cost == 2 and cfg.conversion_reward == 12.5, "amounts from env")
    _assert(cfg.api_port == 9090, f"port: {cfg.api_port}")

    os.environ["LOG_DIR"] = str(tmpdir / "logs")
    os.environ["LOG_FILE_NAME"] = "smoke.log"
    os.environ["LOG_LEVEL"] = "debug"
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level
    try:
        settings = configure_logging("smoke")
        _assert(settings.file_path == tmpdir / "logs" / "smoke.log", f"log file path: {settings.file_path}")
        logging.getLogger("smoke.check").info("directory logging smoke line")
        for handler in root_logger.handlers:
            handler.flush()
        log_text = (tmpdir / "logs" / "smoke.log").read_text(encoding="utf-8")
        _assert("directory logging smoke line" in log_text, "log line must land in the rotating file")
        _assert(root_logger.level == logging.DEBUG, "LOG_LEVEL applied")

        for handler in root_logger.handlers:
            handler.close()
        blocker = tmpdir / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")
        os.environ["LOG_DIR"] = str(blocker)
        os.environ["LOG_LEVEL"] = "bogus"
        configure_logging("smoke")
        _assert(len(root_logger.handlers) == 1, "unusable LOG_DIR falls back to console only")
        _assert(root_logger.level == logging.INFO, "unknown LOG_LEVEL falls back to INFO")
    finally:
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers[:] = saved_handlers
        root_logger.setLevel(saved_level)


def main() -> None:
    tmpdir = Path(tempfile.mkdtemp(prefix="directory-smoke-config-"))
    saved_env = {key: os.environ.get(key) for key in ENV_KEYS}
    try:
        sys.path.insert(0, str(REPO_ROOT / "src"))
        _run_checks(tmpdir)
        print("OK: config/logging smoke test passed.")
    finally:
        for key, value in saved_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        shutil.rmtree(tmpdir, ignore_errors=True)


if __name__ == "__main__":
    main()
