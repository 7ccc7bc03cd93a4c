from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger(__name__)

DEFAULT_ENCODING = "latin-1"


class SourceReadError(RuntimeError):
    """The input file is missing or cannot be read; distinct from decode failures."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to read {path}: {reason}")


def read_source_bytes(path: Path | str) -> bytes:
    source_path = Path(path)
    try:
        payload = source_path.read_bytes()
    except FileNotFoundError as error:
        raise SourceReadError(source_path, "file not found") from error
    except IsADirectoryError as error:
        raise SourceReadError(source_path, "path is a directory") from error
    except OSError as error:
        raise SourceReadError(source_path, error.strerror or str(error)) from error
    LOGGER.debug("Read %s bytes from %s", len(payload), source_path)
    return payload


def read_source_text(path: Path | str, encoding: str = DEFAULT_ENCODING) -> str:
    payload = read_source_bytes(path)
    try:
        return payload.decode(encoding)
    except UnicodeDecodeError as error:
        raise SourceReadError(Path(path), f"not valid {encoding} text") from error


def read_source_lines(path: Path | str, encoding: str = DEFAULT_ENCODING) -> list[tuple[int, str]]:
    """Returns ``(line_number, line)`` pairs with line terminators removed."""
    text = read_source_text(path, encoding=encoding)
    return [
        (line_number, raw_line.rstrip("\r\n"))
        for line_number, raw_line in enumerate(text.splitlines(), start=1)
    ]
