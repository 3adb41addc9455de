"""Specialized agents."""

from .debt_demolisher import DebtDemolisherAgent
from .gastos_guardian import GastosGuardianAgent
from .ipon_coach import IponCoachAgent
from .pera_planner import PeraPlannerAgent
from .wealth_builder import WealthBuilderAgent

__all__ = [
    "DebtDemolisherAgent",
    "GastosGuardianAgent",
    "IponCoachAgent",
    "PeraPlannerAgent",
    "WealthBuilderAgent",
]
