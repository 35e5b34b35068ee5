"""Screenshot helpers operating on raw PNG bytes."""

from pathlib import Path
from typing import Union
import base64


def take_base64(png: bytes) -> str:
    """Encode screenshot bytes for embedding in JSON or HTML."""
    return base64.b64encode(png).decode("ascii")


def save_to_file(png: bytes, path: Union[str, Path]) -> Path:
    """Write screenshot bytes to `path`, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(png)
    return path


def compare_screenshots(first: bytes, second: bytes) -> float:
    """
    Byte-level similarity between two screenshots.

    Returns 1.0 for identical input and 0.0 when the sizes differ.
    This is a cheap change detector, not a perceptual diff.
    """
    if len(first) != len(second):
        return 0.0
    if not first:
        return 1.0
    different = sum(1 for a, b in zip(first, second) if a != b)
    return 1.0 - different / len(first)
