from .grid import Grid, flat, unflat
from .fields import Field, FieldStore, axpy, mean, plus_scaled
from .operators import DerivOps, FDOps, make_ops
