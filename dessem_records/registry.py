from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Callable, Mapping

from . import cortdeco, hidr
from .extraction import normalize_name

LOGGER = logging.getLogger(__name__)

Decoder = Callable[[Path], Any]


def default_parsers() -> dict[str, Decoder]:
    """A fresh filename-pattern map for the binary formats of this package.

    Callers own the returned dict and may add their own text-format decoders.
    """
    return {
        "HIDR.DAT": hidr.decode_file,
        "CORTDECO.RV*": cortdeco.decode_cuts,
    }


def resolve_parser(filename: str | Path, parsers: Mapping[str, Decoder]) -> Decoder | None:
    normalized = normalize_name(filename)
    direct = parsers.get(normalized)
    if direct is not None:
        return direct
    for pattern, decoder in parsers.items():
        if fnmatchcase(normalized, normalize_name(pattern)):
            return decoder
    return None


def dispatch(path: Path | str, parsers: Mapping[str, Decoder]) -> Any:
    source_path = Path(path)
    decoder = resolve_parser(source_path, parsers)
    if decoder is None:
        known = ", ".join(sorted(parsers)) or "none"
        raise LookupError(f"No decoder registered for {source_path.name}. Known: {known}")
    LOGGER.info("Decoding %s with %s", source_path, getattr(decoder, "__name__", decoder))
    return decoder(source_path)
