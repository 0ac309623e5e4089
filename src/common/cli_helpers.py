"""Helpers shared by the command line entry points."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any


def setup_logging(level: int = logging.INFO) -> None:
    """Log to stderr with timestamps and levels."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def positive_float(value: str) -> float:
    """Parse a strictly positive float for argparse arguments."""
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not a number") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"{value!r} must be greater than zero")
    return parsed


def write_report_jsonl(
    records: list[dict[str, Any]],
    report_id: int,
    created_at: datetime,
    output_dir: Path | str = "output",
) -> Path:
    """Write one JSON line per report group, named after the report.

    Existing files for the same report are overwritten.
    """
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"report_{report_id}_{created_at:%Y%m%dT%H%M}.jsonl"
    lines = [json.dumps(record, default=str, ensure_ascii=False) for record in records]
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    return path
