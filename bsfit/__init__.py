from bsfit.basis import SplineBasis, BoundaryCondition, MINIMUM_NODES, MINIMUM_POINTS
from bsfit.fit import SplineFit
from bsfit.status import FitStatus
from bsfit.debug import set_debug, debug_enabled
from bsfit.version import BSFIT_VERSION, BSFIT_URL, version

__version__ = BSFIT_VERSION

__all__ = [
    "SplineBasis",
    "SplineFit",
    "BoundaryCondition",
    "FitStatus",
    "MINIMUM_NODES",
    "MINIMUM_POINTS",
    "set_debug",
    "debug_enabled",
    "version",
    "BSFIT_URL",
]
