from .plain import dump_all_fields_plain, read_plain_scalar, write_plain_scalar
from .vtk import dump_all_fields_vtk, write_vtk_scalar
