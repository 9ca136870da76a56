"""
Motion data I/O utilities.

Motion files hold one frame pair per line in the form
``INDEX dx dy rotation``; lines starting with ``#`` are comments.
Corrections are written as CSV with a header row.
"""

import csv
import re
from pathlib import Path
from typing import Iterator

from vstab.tracking.stabilizer import Correction, MotionData

_NUMBER = r'(-?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?|nan|-?inf)'

# Pattern for parsing motion lines: INDEX dx dy rotation
MOTION_PATTERN = re.compile(rf'(\d+)\s+{_NUMBER}\s+{_NUMBER}\s+{_NUMBER}')

CORRECTION_HEADER = ["pair", "dx", "dy", "rotation"]


def parse_motion_line(line: str) -> tuple[int, float, float, float] | None:
    """
    Parse a single line of motion data.

    Args:
        line: Line of text to parse

    Returns:
        Tuple of (index, dx, dy, rotation) or None for blank, comment
        or malformed lines
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    match = MOTION_PATTERN.fullmatch(line)
    if match is None:
        return None

    return (
        int(match.group(1)),
        float(match.group(2)),
        float(match.group(3)),
        float(match.group(4)),
    )


def iter_motion_file(path: str | Path) -> Iterator[tuple[int, float, float, float]]:
    """
    Iterate over the parsed lines of a motion file.

    Yields:
        Tuples of (index, dx, dy, rotation)
    """
    path = Path(path)
    with open(path, 'r') as f:
        for line in f:
            parsed = parse_motion_line(line)
            if parsed:
                yield parsed


def read_motion_file(path: str | Path) -> MotionData:
    """
    Read motion data from a file.

    Entries are ordered by index; gaps in the index sequence are filled
    with zero motion.

    Args:
        path: Path to the motion file

    Returns:
        MotionData

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Motion file not found: {path}")

    entries = {index: (dx, dy, rot) for index, dx, dy, rot in iter_motion_file(path)}
    if not entries:
        return MotionData.zeros(0)

    motion = MotionData.zeros(max(entries) + 1)
    for index, (dx, dy, rot) in entries.items():
        motion.dx[index] = dx
        motion.dy[index] = dy
        motion.rotation[index] = rot
    return motion


def write_motion_file(path: str | Path, motion: MotionData) -> None:
    """
    Write motion data to a file.

    Example:
        >>> write_motion_file("clip.motion", MotionData([1.0], [0.5], [0.0]))
    """
    path = Path(path)
    with open(path, 'w') as f:
        f.write("# index dx dy rotation\n")
        for i, (dx, dy, rot) in enumerate(zip(motion.dx, motion.dy, motion.rotation)):
            f.write(f"{i} {float(dx)!r} {float(dy)!r} {float(rot)!r}\n")


def write_corrections_csv(path: str | Path, corrections: list[Correction]) -> None:
    """
    Write per-pair corrections to a CSV file.

    Args:
        path: Output CSV path
        corrections: (dx, dy, rotation) triplets in frame pair order
    """
    path = Path(path)
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(CORRECTION_HEADER)
        for i, (dx, dy, rot) in enumerate(corrections):
            writer.writerow([i, f"{dx:.6f}", f"{dy:.6f}", f"{rot:.8f}"])


def read_corrections_csv(path: str | Path) -> list[Correction]:
    """
    Read corrections written by write_corrections_csv().

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Corrections file not found: {path}")

    with open(path, 'r', newline='') as f:
        reader = csv.DictReader(f)
        return [
            (float(row["dx"]), float(row["dy"]), float(row["rotation"]))
            for row in reader
        ]
