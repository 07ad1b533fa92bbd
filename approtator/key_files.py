"""
Reading and writing ``privateKey`` CSV files.

Files are validated as a whole: a bad header, a malformed key or too many
rows rejects the file and no keys are returned.
"""

import logging
from pathlib import Path

from approtator.errors import KeyFileNotFoundError, ValidationError
from approtator.keys import PRIVATE_KEY_LENGTH, is_hex

logger = logging.getLogger(__name__)

HEADER = "privateKey"
MAX_ROWS = 100


def parse_private_keys(
    text: str,
    source: str = "<string>",
    max_rows: int = MAX_ROWS,
) -> list[str]:
    """
    Parse the content of a key file.
    Returns the keys in file order, or raises ValidationError.
    """
    lines = [line.strip() for line in text.split("\n")]

    if not lines or lines[0] != HEADER:
        raise ValidationError(f"malformed CSV for app keys: {source} (header must be '{HEADER}')")

    keys = [line for line in lines[1:] if line]

    # Report row numbers only; the offending values are secrets.
    bad_rows = [
        row for row, key in enumerate(keys, 2)
        if len(key) != PRIVATE_KEY_LENGTH or not is_hex(key)
    ]
    if bad_rows:
        rows = ", ".join(str(r) for r in bad_rows)
        raise ValidationError(
            f"malformed CSV for app keys: {source} (rows {rows} are not {PRIVATE_KEY_LENGTH} hex characters)"
        )

    if len(keys) > max_rows:
        raise ValidationError(
            f"malformed CSV for app keys: {source} ({len(keys)} keys; avoid batch sending to more "
            f"than {max_rows}, wait another 15 minutes and try another {max_rows})"
        )

    logger.debug("Parsed %d keys from %s", len(keys), source)
    return keys


def load_private_keys(path: Path, max_rows: int = MAX_ROWS) -> list[str]:
    path = Path(path)
    if not path.is_file():
        raise KeyFileNotFoundError(path)
    return parse_private_keys(
        path.read_text(encoding="utf-8"), source=str(path), max_rows=max_rows
    )


def render_private_keys(keys: list[str]) -> str:
    return "\n".join([HEADER, *keys]) + "\n"
