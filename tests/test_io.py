import numpy as np
import numpy.testing as npt
import pytest

from phasegrid.errors import GridMismatchError
from phasegrid.io import (dump_all_fields_plain, dump_all_fields_vtk, read_plain_scalar,
                          write_plain_scalar, write_vtk_scalar)
from phasegrid.numerics.fields import Field, FieldStore
from phasegrid.numerics.grid import Grid


@pytest.fixture
def field2d(grid2d, rng):
    return Field(grid2d, rng.normal(size=grid2d.size))


class TestPlainText:

    def test_write_read(self, tmp_path, field2d):
        path = tmp_path / "phi.dat"
        write_plain_scalar(field2d, path, step=200, t=0.5)
        values, step, t = read_plain_scalar(path, field2d.grid)
        assert step == 200
        assert t == 0.5
        npt.assert_allclose(values, field2d.values, rtol=1e-15)

    def test_layout(self, tmp_path):
        g = Grid((3, 2), (3.0, 1.0))
        f = Field(g, [1, 2, 3, 4, 5, 6])
        path = tmp_path / "f.dat"
        write_plain_scalar(f, path, step=7, t=0.25)
        lines = path.read_text().splitlines()
        assert lines[0] == "# step = 7, t = 0.25, size = 3 2, dx = 1 0.5"
        assert lines[1].split() == ['1', '2', '3']
        assert lines[2].split() == ['4', '5', '6']
        assert lines[3] == ""

    def test_one_dimensional(self, tmp_path):
        g = Grid((4,), (2.0,))
        f = Field(g, [0.5, -1.0, 2.0, 3.25])
        path = tmp_path / "u.dat"
        write_plain_scalar(f, path, step=0, t=0.0)
        assert len(path.read_text().splitlines()) == 6
        values, _, _ = read_plain_scalar(path, g)
        npt.assert_array_equal(values, f.values)

    def test_append_reads_last_snapshot(self, tmp_path, field2d):
        path = tmp_path / "phi.dat"
        write_plain_scalar(field2d, path, step=0, t=0.0)
        later = Field(field2d.grid, field2d.values * 2)
        write_plain_scalar(later, path, step=10, t=1.0, append=True)
        values, step, t = read_plain_scalar(path, field2d.grid)
        assert (step, t) == (10, 1.0)
        npt.assert_allclose(values, later.values, rtol=1e-15)

    def test_grid_mismatch(self, tmp_path, field2d):
        path = tmp_path / "phi.dat"
        write_plain_scalar(field2d, path, step=0, t=0.0)
        with pytest.raises(GridMismatchError):
            read_plain_scalar(path, Grid((12, 16), (24.0, 16.0)))

    def test_missing_header(self, tmp_path, grid2d):
        path = tmp_path / "bad.dat"
        path.write_text("1 2 3\n")
        with pytest.raises(GridMismatchError):
            read_plain_scalar(path, grid2d)

    def test_missing_file(self, tmp_path, grid2d):
        with pytest.raises(OSError):
            read_plain_scalar(tmp_path / "absent.dat", grid2d)

    def test_three_dimensional_rejected(self, tmp_path):
        g = Grid((2, 2, 2), (1.0, 1.0, 1.0))
        with pytest.raises(ValueError):
            write_plain_scalar(Field(g), tmp_path / "f.dat", 0, 0.0)

    def test_dump_all_fields(self, tmp_path, noisy_state):
        dump_all_fields_plain(noisy_state, tmp_path / "snap", step=3, t=0.3)
        assert sorted(p.name for p in tmp_path.iterdir()) == ['snap_c.dat', 'snap_phi.dat']

    def test_dump_skips_three_dimensional(self, tmp_path, caplog):
        S = FieldStore(Grid((2, 2, 2), (1.0, 1.0, 1.0)))
        S.ensure('phi')
        dump_all_fields_plain(S, tmp_path / "snap", step=0, t=0.0)
        assert not list(tmp_path.iterdir())
        assert "skipping" in caplog.text


class TestVTK:

    def test_header(self, tmp_path):
        g = Grid((4, 3), (2.0, 6.0))
        f = Field(g, np.arange(12, dtype=float))
        path = tmp_path / "phi.vtk"
        write_vtk_scalar(f, path, "phi")
        lines = path.read_text().splitlines()
        assert lines[0] == "# vtk DataFile Version 3.0"
        assert lines[2] == "ASCII"
        assert lines[3] == "DATASET STRUCTURED_POINTS"
        assert lines[4] == "DIMENSIONS 4 3 1"
        assert lines[5] == "ORIGIN 0 0 0"
        assert lines[6] == "SPACING 0.5 2 1"
        assert lines[7] == "POINT_DATA 12"
        assert lines[8] == "SCALARS phi double"
        assert lines[9] == "LOOKUP_TABLE default"
        npt.assert_array_equal([float(v) for v in lines[10:]], f.values)

    def test_one_dimensional_padding(self, tmp_path):
        g = Grid((5,), (10.0,))
        path = tmp_path / "u.vtk"
        write_vtk_scalar(Field(g), path, "u")
        lines = path.read_text().splitlines()
        assert lines[4] == "DIMENSIONS 5 1 1"
        assert lines[6] == "SPACING 2 1 1"

    def test_dump_all_fields(self, tmp_path, noisy_state):
        out = tmp_path / "vtk"
        dump_all_fields_vtk(noisy_state, out, step=40)
        assert sorted(p.name for p in out.iterdir()) == ['40_c.vtk', '40_phi.vtk']
