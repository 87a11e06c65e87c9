"""
make2manage - A make-to-order shop floor simulation

The order-flow core of an educational manufacturing game: orders travel
through a sequence of department stations, each a finite-capacity queue
with its own dispatch rule, while the engine tracks utilization, lead
time, on-time delivery and a delivery forecast.

This package provides:
- Deterministic, replayable simulation engine with pause, undo and redo
- Procedural and authored (level file) order books
- Save slots for whole sessions
- CLI for headless runs
"""

__version__ = "0.1.0"

from make2manage.config.schema import get_default_config
from make2manage.engine.simulation import Simulation, run_session
from make2manage.models.settings import GameSettings

__all__ = [
    "__version__",
    "GameSettings",
    "Simulation",
    "get_default_config",
    "run_session",
]
