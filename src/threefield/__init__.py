"""threefield: quasi-static three-field (u / p / J) finite elements for
nearly-incompressible hyperelastic solids."""

from .config import SimulationConfig
from .convergence import ErrorNorms, NewtonConvergence
from .errors import (
    ThreeFieldError,
    InvalidMaterialParameters,
    KinematicInversion,
    SingularCondensationBlock,
    NewtonNonConvergence,
)
from .materials import MaterialParameters, MaterialModel, NeoHookeanThreeField
from .qp_record import QuadraturePointRecord, QuadraturePointHistory
from .newton import NewtonRaphsonController, NewtonResult
from .time_stepper import Time, TimeStepper
from .solid import Solid
from .output.history import SolutionHistory
from .output.vtk_export import VTKWriter

__all__ = [
    "SimulationConfig",
    "ErrorNorms", "NewtonConvergence",
    "ThreeFieldError", "InvalidMaterialParameters", "KinematicInversion",
    "SingularCondensationBlock", "NewtonNonConvergence",
    "MaterialParameters", "MaterialModel", "NeoHookeanThreeField",
    "QuadraturePointRecord", "QuadraturePointHistory",
    "NewtonRaphsonController", "NewtonResult",
    "Time", "TimeStepper",
    "Solid", "SolutionHistory", "VTKWriter",
]

__version__ = "0.1.0"
