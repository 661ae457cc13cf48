from signalfolio.sizing.base import PositionSizer, allocate, require_equity
from signalfolio.sizing.conviction_weighted import ConvictionWeightedSizer
from signalfolio.sizing.equal_weight import EqualWeightSizer
from signalfolio.sizing.materiality_weighted import MaterialityWeightedSizer
from signalfolio.sizing.registry import SIZING_MODES, build_sizer
from signalfolio.sizing.role_weighted import DEFAULT_ROLE_WEIGHTS, RoleWeightedSizer
from signalfolio.sizing.value_weighted import ValueWeightedSizer

__all__ = [
    "PositionSizer",
    "allocate",
    "require_equity",
    "ConvictionWeightedSizer",
    "EqualWeightSizer",
    "MaterialityWeightedSizer",
    "SIZING_MODES",
    "build_sizer",
    "DEFAULT_ROLE_WEIGHTS",
    "RoleWeightedSizer",
    "ValueWeightedSizer",
]
