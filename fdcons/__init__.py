"""Finite-difference schemes for 1D scalar conservation laws."""
from . import constants, grid
from .errors import FdConsError
from .run_parallel import ParallelRunner
from .run_serial import SerialRunner
from .solver import Boundary, GridState, SolverCore, StepParams

__all__ = [
    "constants",
    "grid",
    "FdConsError",
    "Boundary",
    "GridState",
    "SolverCore",
    "StepParams",
    "SerialRunner",
    "ParallelRunner",
]
