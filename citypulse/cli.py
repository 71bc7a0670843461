#!/usr/bin/env python3
"""Command-line interface for the CityPulse pipeline.

Commands:
  - citypulse run      : Normalize a file of raw blobs into geocoded events
  - citypulse extract  : Extract and validate a single blob of text

Typical usage:
  citypulse run --input blobs.jsonl --output events.json
  citypulse run --input scraped.txt --workers 4 --no-llm
  citypulse extract "Jazz Night at Blue Note - 8:00 PM - $25"
"""

from __future__ import annotations

import argparse
import copy
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from citypulse.configs.config import Config
from citypulse.configs.settings import get_settings
from citypulse.ingestion.normalization.field_extractor import FieldExtractor
from citypulse.ingestion.normalization.llm_client import create_llm_client
from citypulse.ingestion.orchestrator import create_orchestrator_from_config
from citypulse.ingestion.validation import RecordValidator
from citypulse.monitoring.logging import setup_logging
from citypulse.schemas.event import RawBlob

logger = logging.getLogger(__name__)


class BlobInputError(Exception):
    """The blob input file is missing or malformed."""


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="citypulse", description="CityPulse event normalization CLI")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = p.add_subparsers(dest="cmd")

    # run
    pr = sub.add_parser("run", help="Run the normalization pipeline over a blob file")
    pr.add_argument(
        "--input", "-i", required=True, help="Blob file: .jsonl, .json array, or plain text"
    )
    pr.add_argument("--output", "-o", default=None, help="Write events JSON here (default stdout)")
    pr.add_argument("--workers", "-w", type=int, default=None, help="Worker threads")
    pr.add_argument("--max-records", type=int, default=None, help="Output cap per run")
    pr.add_argument("--json-logs", action="store_true", help="Emit JSON logs")
    pr.add_argument("--log-file", default=None, help="Also write logs to this file")
    pr.add_argument("--geocode", action="store_true", help="Enable precise geocoding (Nominatim)")
    pr.add_argument("--no-llm", action="store_true", help="Rule-based extraction only")

    # extract
    pe = sub.add_parser("extract", help="Extract and validate a single blob")
    pe.add_argument("text", help="Raw event text")
    pe.add_argument("--source", default="cli", help="Provenance tag for the blob")
    pe.add_argument("--no-llm", action="store_true", help="Rule-based extraction only")

    return p.parse_args(argv)


def read_blobs(path: str | Path) -> list[RawBlob]:
    """
    Load raw blobs from a file.

    - ``.jsonl``: one object per line (``text``, optional ``source`` and
      ``retrieved_at``) or one JSON string per line
    - ``.json``: an array of such objects or strings
    - anything else: plain text, one blob per non-empty line

    Raises:
        BlobInputError: File missing or not parseable
    """
    p = Path(path)
    if not p.exists():
        raise BlobInputError(f"Input not found: {p}")

    try:
        content = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise BlobInputError(f"Cannot read {p}: {e}") from e

    suffix = p.suffix.lower()
    try:
        if suffix == ".jsonl":
            items = [json.loads(line) for line in content.splitlines() if line.strip()]
        elif suffix == ".json":
            items = json.loads(content)
            if not isinstance(items, list):
                raise BlobInputError(f"Expected a JSON array in {p}")
        else:
            items = [line.strip() for line in content.splitlines() if line.strip()]
        return [_to_blob(item, default_source=p.name) for item in items]
    except json.JSONDecodeError as e:
        raise BlobInputError(f"Invalid JSON in {p}: {e}") from e
    except ValidationError as e:
        raise BlobInputError(f"Invalid blob in {p}: {e}") from e


def _to_blob(item: Any, default_source: str) -> RawBlob:
    if isinstance(item, str):
        return RawBlob(text=item, source=default_source)
    if isinstance(item, dict):
        data = dict(item)
        data.setdefault("source", default_source)
        return RawBlob.model_validate(data)
    raise BlobInputError(f"Unsupported blob entry: {item!r}")


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except BlobInputError as e:
        print(f"Error: Invalid input: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()

    if args.version:
        from citypulse import __version__

        print(f"citypulse version {__version__}")
        return 0

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    level = args.log_level or settings.LOG_LEVEL

    if args.cmd == "run":
        setup_logging(
            level,
            json_logs=bool(args.json_logs or settings.LOG_JSON),
            log_file=args.log_file,
        )
        blobs = read_blobs(args.input)

        config = copy.deepcopy(Config.load_pipeline_config())
        if args.workers is not None:
            config.setdefault("orchestrator", {})["max_workers"] = args.workers
        if args.max_records is not None:
            config.setdefault("orchestrator", {})["max_records"] = args.max_records
        if args.geocode:
            config.setdefault("geocoding", {})["enabled"] = True
        if args.no_llm:
            config.setdefault("extraction", {})["use_llm"] = False

        orchestrator = create_orchestrator_from_config(config, settings)
        result = orchestrator.execute(blobs)

        events = [record.to_api_dict() for record in result.records]
        payload = json.dumps(events, indent=2, ensure_ascii=False)
        if args.output:
            out_path = Path(args.output)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(payload + "\n", encoding="utf-8")
        else:
            print(payload)

        print("-" * 40, file=sys.stderr)
        print(f"Run {result.status.value.upper()}", file=sys.stderr)
        print(f"Run ID:      {result.run_id}", file=sys.stderr)
        print(f"Summary:     {json.dumps(result.summary())}", file=sys.stderr)
        print("-" * 40, file=sys.stderr)
        return 0

    if args.cmd == "extract":
        setup_logging(level)
        llm_client = None if args.no_llm else create_llm_client(settings)
        extractor = FieldExtractor(llm_client=llm_client, city_context=settings.city_context)
        record = extractor.extract(RawBlob(text=args.text, source=args.source))

        if record is None:
            print(json.dumps({"record": None, "valid": False}, indent=2))
            return 0

        verdict = RecordValidator().check(record)
        print(
            json.dumps(
                {
                    "record": record.model_dump(mode="json"),
                    "valid": verdict.ok,
                    "issues": [
                        {"level": i.level, "code": i.code, "message": i.message, "field": i.field}
                        for i in verdict.issues
                    ],
                },
                indent=2,
                ensure_ascii=False,
            )
        )
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
