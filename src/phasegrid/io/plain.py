"""
Plain-text snapshots of scalar fields (1-D and 2-D grids).

Each snapshot is a header line followed by the values and a blank line:

    # step = 200, t = 0.5, size = 64 32, dx = 0.5 0.5
    v(0,0) v(1,0) ... v(63,0)
    ...
    v(0,31) ...       v(63,31)

A 1-D field is written as a single column. In append mode successive
snapshots accumulate in one file, forming a trajectory; the reader returns
the last snapshot in the file.
"""

from pathlib import Path
from typing import List, Tuple
import logging
import re

import numpy as np

from ..errors import GridMismatchError
from ..numerics.fields import Field, FieldStore
from ..numerics.grid import Grid

logger = logging.getLogger(__name__)

_HEADER = re.compile(
    r"#\s*step\s*=\s*(?P<step>-?\d+)\s*,\s*t\s*=\s*(?P<t>\S+)\s*,"
    r"\s*size\s*=\s*(?P<size>[\d\s]+?)\s*,\s*dx\s*=\s*(?P<dx>.+)$")


def write_plain_scalar(f: Field, filename, step: int, t: float,
                       append: bool = False) -> None:
    """
    Write one field snapshot.

    Args:
        f: Field on a 1-D or 2-D grid
        filename: Output path
        step: Step number recorded in the header
        t: Simulation time recorded in the header
        append: Append to the file instead of overwriting it
    """
    grid = f.grid
    if grid.dim > 2:
        raise ValueError(f"Plain-text snapshots support 1-D and 2-D grids, got {grid.dim}-D")

    size = ' '.join(str(n) for n in grid.n)
    dx = ' '.join(f"{v:.16g}" for v in grid.dx)
    header = f"# step = {step}, t = {t:.16g}, size = {size}, dx = {dx}"

    if grid.dim == 1:
        rows = f.values.reshape(-1, 1)
    else:
        # y as rows, x as columns
        rows = f.as_array().T

    with open(filename, 'a' if append else 'w') as fh:
        fh.write(header + "\n")
        np.savetxt(fh, rows, fmt='%.16g')
        fh.write("\n")


def read_plain_scalar(filename, grid: Grid) -> Tuple[np.ndarray, int, float]:
    """
    Read the last snapshot of a plain-text file.

    Args:
        filename: Snapshot file
        grid: Grid the values are meant for

    Returns:
        Tuple of (flat values, step, time)

    Raises:
        GridMismatchError: if the recorded size disagrees with the grid
        OSError: if the file cannot be read
    """
    with open(filename, 'r') as fh:
        lines = fh.read().splitlines()

    starts = [i for i, line in enumerate(lines) if line.startswith('#')]
    if not starts:
        raise GridMismatchError(f"{filename}: no snapshot header found")
    start = starts[-1]

    m = _HEADER.match(lines[start].strip())
    if m is None:
        raise GridMismatchError(f"{filename}: malformed header: {lines[start]!r}")
    step = int(m.group('step'))
    t = float(m.group('t'))
    size = tuple(int(v) for v in m.group('size').split())

    if size != grid.n:
        raise GridMismatchError(
            f"{filename}: snapshot size {size} does not match grid {grid.n}")

    rows: List[List[float]] = []
    for line in lines[start + 1:]:
        if not line.strip():
            break
        rows.append([float(v) for v in line.split()])

    data = np.array(rows, dtype=float)
    if data.size != grid.size:
        raise GridMismatchError(
            f"{filename}: snapshot holds {data.size} values, grid has {grid.size} cells")

    # rows are y, columns x, so C-order ravel is x fastest
    return data.ravel(), step, t


def dump_all_fields_plain(S: FieldStore, prefix, step: int, t: float,
                          append: bool = False) -> None:
    """Write every field of a store to <prefix>_<name>.dat."""
    if S.grid.dim > 2:
        logger.warning("Plain-text output is not available for %d-D grids; skipping",
                       S.grid.dim)
        return

    for name, f in S.items():
        fname = Path(f"{prefix}_{name}.dat")
        write_plain_scalar(f, fname, step, t, append)
