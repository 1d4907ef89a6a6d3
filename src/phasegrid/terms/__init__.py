from .base import EnergyReporting, System, SystemBuilder, Term
from .allen_cahn import AllenCahnTerm
from .cahn_hilliard import CahnHilliardTerm
from .multi_species import MultiCahnHilliardTerm
