"""
Legacy VTK (ASCII STRUCTURED_POINTS) output for scalar fields.

Grids of dimension below three are padded: missing axes get one point and
unit spacing. Values are written x fastest, then y, then z, which is the
flat buffer order of a Field, so no reordering is needed.
"""

from pathlib import Path
import logging

from ..numerics.fields import Field, FieldStore

logger = logging.getLogger(__name__)


def write_vtk_scalar(f: Field, filename, scalar_name: str) -> None:
    """
    Write one field as a VTK structured-points dataset.

    Args:
        f: Field on a 1-, 2- or 3-D grid
        filename: Output path
        scalar_name: Name of the SCALARS array in the file
    """
    grid = f.grid
    dims = list(grid.n) + [1] * (3 - grid.dim)
    spacing = list(grid.dx) + [1.0] * (3 - grid.dim)
    n_points = dims[0] * dims[1] * dims[2]

    with open(filename, 'w') as fh:
        fh.write("# vtk DataFile Version 3.0\n")
        fh.write("phasegrid scalar output\n")
        fh.write("ASCII\n")
        fh.write("DATASET STRUCTURED_POINTS\n")
        fh.write(f"DIMENSIONS {dims[0]} {dims[1]} {dims[2]}\n")
        fh.write("ORIGIN 0 0 0\n")
        fh.write("SPACING " + " ".join(f"{s:.16g}" for s in spacing) + "\n")
        fh.write(f"POINT_DATA {n_points}\n")
        fh.write(f"SCALARS {scalar_name} double\n")
        fh.write("LOOKUP_TABLE default\n")
        fh.writelines(f"{v:.16g}\n" for v in f.values)


def dump_all_fields_vtk(S: FieldStore, out_dir, step: int) -> None:
    """Write every field of a store to <out_dir>/<step>_<name>.vtk."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, f in S.items():
        write_vtk_scalar(f, out_dir / f"{step}_{name}.vtk", name)
    logger.debug("Wrote %d VTK files for step %d to %s", len(S), step, out_dir)
