"""
Core simulation library for request generation, admission control, scheduling policies and balance statistics.
"""

from .config import SimConfig, RequestType, InvalidConfiguration, load_config
from .models import Request, Server, ServerSnapshot
from .request_generator import RequestGenerator
from .scheduler import AdmissionSim, Admitted, Rejected
from .statistics import compute_stats, balance_score, BalanceHistory, BalanceSample, StatisticsEngine
from . import strategies

__all__ = [
    "SimConfig",
    "RequestType",
    "InvalidConfiguration",
    "load_config",
    "Request",
    "Server",
    "ServerSnapshot",
    "RequestGenerator",
    "AdmissionSim",
    "Admitted",
    "Rejected",
    "compute_stats",
    "balance_score",
    "BalanceHistory",
    "BalanceSample",
    "StatisticsEngine",
    "strategies",
]
