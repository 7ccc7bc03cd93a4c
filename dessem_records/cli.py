from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import cortdeco, hidr
from .config import load_settings
from .errors import DecodeError
from .extraction import ExtractionContext, extract_layout, is_comment_line
from .models import RecordLayout
from .sources import SourceReadError, read_source_lines

LOGGER = logging.getLogger(__name__)


def _setup_logging(verbose: bool, level_name: str = "INFO") -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def save_jsonl(records: list[dict[str, Any]], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as handle:
        for record in records:
            handle.write(json.dumps(record, ensure_ascii=False, default=str))
            handle.write("\n")


def _print_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
    sys.stdout.write("\n")


def _int_list(raw: str) -> list[int]:
    try:
        return [int(token) for token in raw.split(",") if token.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got {raw!r}") from None


def _float_list(raw: str) -> list[float]:
    try:
        return [float(token) for token in raw.split(",") if token.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated numbers, got {raw!r}") from None


def _load_layout(layout_path: Path) -> RecordLayout:
    payload = json.loads(layout_path.read_text(encoding="utf-8"))
    return RecordLayout.model_validate(payload)


def _hidr_command(args: argparse.Namespace) -> int:
    plants = hidr.decode_file(Path(args.input))
    if args.output_jsonl:
        save_jsonl([plant.model_dump(mode="json") for plant in plants], Path(args.output_jsonl))
        LOGGER.info("Plants exported to %s", args.output_jsonl)
    _print_json(
        {
            "plants": len(plants),
            "installed_capacity": sum(plant.installed_capacity for plant in plants),
            "by_subsystem": {
                str(subsystem): [plant.name for plant in members]
                for subsystem, members in sorted(hidr.plants_by_subsystem(plants).items())
            },
        }
    )
    return 0


def _cuts_command(args: argparse.Namespace) -> int:
    collection = cortdeco.decode_cuts(Path(args.input), heads=args.heads)
    payload: dict[str, Any] = {
        "heads_inferred": collection.heads_inferred,
        "chains": [
            {"head": chain.head, "length": len(chain), "positions": list(chain.positions)}
            for chain in collection.chains
        ],
        "statistics": cortdeco.cut_statistics(collection).model_dump(mode="json"),
    }
    if args.state is not None:
        payload["water_value"] = cortdeco.water_value(collection, args.state)
    _print_json(payload)
    return 0


def _extract_command(args: argparse.Namespace) -> int:
    layout = _load_layout(Path(args.layout))
    records: list[dict[str, Any]] = []
    for line_number, line in read_source_lines(Path(args.input), encoding=args.encoding):
        if not line.strip() or is_comment_line(line):
            continue
        context = ExtractionContext(source=args.input, line_number=line_number)
        record = extract_layout(line, layout, context)
        records.append({"record_type": layout.name, "line_number": line_number, **record})

    save_jsonl(records=records, output_path=Path(args.output_jsonl))
    LOGGER.info("Extracted %s records into %s", len(records), args.output_jsonl)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dessem-records",
        description="Decode DESSEM fixed-width text and binary record files.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    hidr_parser = subparsers.add_parser("hidr", help="Decode a binary HIDR.DAT plant registry.")
    hidr_parser.add_argument("--input", required=True, help="Path to HIDR.DAT.")
    hidr_parser.add_argument("--output-jsonl", default=None, help="Optional JSONL export of every plant.")
    hidr_parser.set_defaults(handler=_hidr_command)

    cuts = subparsers.add_parser("cuts", help="Decode a cortdeco cut file and summarise its chains.")
    cuts.add_argument("--input", required=True, help="Path to cortdeco.rvN.")
    cuts.add_argument(
        "--heads",
        type=_int_list,
        default=None,
        help="Comma-separated chain-head record positions (0-based). Inferred when omitted.",
    )
    cuts.add_argument(
        "--state",
        type=_float_list,
        default=None,
        help="Comma-separated state vector for the water value.",
    )
    cuts.set_defaults(handler=_cuts_command)

    extract = subparsers.add_parser("extract", help="Extract a fixed-column text file with a JSON layout.")
    extract.add_argument("--layout", required=True, help="RecordLayout JSON path.")
    extract.add_argument("--input", required=True, help="Text file to decode.")
    extract.add_argument("--output-jsonl", required=True, help="Output JSONL path.")
    extract.add_argument("--encoding", default=None, help="Input file encoding.")
    extract.set_defaults(handler=_extract_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    settings = load_settings()
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(verbose=args.verbose, level_name=settings.log_level)
    if getattr(args, "encoding", "unset") is None:
        args.encoding = settings.encoding
    try:
        return args.handler(args)
    except (DecodeError, SourceReadError, ValueError) as error:
        LOGGER.error("%s", error)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
