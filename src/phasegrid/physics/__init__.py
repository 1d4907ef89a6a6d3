from .free_energy import (DoubleWellFreeEnergy, GelRelaxation, LandauFreeEnergy,
                          LinearRelaxation, MultiQuadraticFreeEnergy, WertheimFreeEnergy)
from .mobility import (ConstantMobility, DiagonalConstantMobility, DiagonalMobility,
                       ExpOfFieldMobility, MatrixConstantMobility, MatrixMobility,
                       WertheimMobility)
