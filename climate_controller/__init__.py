from .autotune import AutoTuneLearner
from .config import AppConfig
from .cycles import CycleTracker
from .engine import ClimateEngine, ControllerState
from .models import Action, ClimateTick, CycleType, Direction, Mode, Side
from .rate import RateEstimator
from .service import ClimateService

__all__ = [
    "AutoTuneLearner",
    "AppConfig",
    "CycleTracker",
    "ClimateEngine",
    "ControllerState",
    "Action",
    "ClimateTick",
    "CycleType",
    "Direction",
    "Mode",
    "Side",
    "RateEstimator",
    "ClimateService",
]
