"""Version number extraction and comparison.

Handles dotted numeric versions (``1.12``, ``20.10.7``). Pre-release
suffixes after a dash are not compared; extraction drops them.
"""
import logging
import re
from typing import List

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"\d+(?:\.\d+)*")

# Maximum number of dotted components considered when padding
DEFAULT_DEPTH = 8


def extract_version(line: str) -> str:
    """
    Pull the first dotted version number out of a line of tool output.

    ``"Docker version 20.10.7, build f0df350"`` gives ``"20.10.7"``,
    ``"v1.2.3-extra"`` gives ``"1.2.3"``. Returns an empty string when the
    line holds no number.
    """
    if not line:
        return ""
    match = _VERSION_RE.search(line)
    if match is None:
        logger.warning(f"Cannot extract a version number out of '{line}'!")
        return ""
    return match.group(0)


def depth(version: str) -> int:
    return len(version.split("."))


def _equalise(version: str, length: int = DEFAULT_DEPTH) -> List[int]:
    parts = [int(p) if p.isdigit() else 0 for p in version.split(".")]
    while len(parts) < length:
        parts.append(0)
    return parts


def compare_versions(current: str, base: str) -> int:
    """Return -1, 0 or 1 as `current` is lower than, equal to or greater than `base`."""
    length = max(depth(current), depth(base))
    left = _equalise(current, length)
    right = _equalise(base, length)
    if left > right:
        return 1
    if left < right:
        return -1
    return 0


def vgt(current: str, base: str) -> bool:
    return compare_versions(current, base) > 0


def vge(current: str, base: str) -> bool:
    return compare_versions(current, base) >= 0


def vlt(current: str, base: str) -> bool:
    return compare_versions(current, base) < 0


def vle(current: str, base: str) -> bool:
    return compare_versions(current, base) <= 0


def veq(current: str, base: str) -> bool:
    return compare_versions(current, base) == 0
