"""
Strategy policy exports.

Every policy has the signature
    policy(servers, cursor, request=None, rng=None) -> server index
and never mutates the servers it is given.
"""

from typing import Callable, Dict

from ..config import InvalidConfiguration
from .strategy_round_robin import policy_round_robin
from .strategy_random import policy_random
from .strategy_least_requests import policy_least_requests
from .strategy_least_response_time import policy_least_response_time
from .strategy_dynamic_cpu import policy_dynamic_cpu

POLICIES: Dict[str, Callable] = {
    "round_robin": policy_round_robin,
    "random": policy_random,
    "least_requests": policy_least_requests,
    "least_response_time": policy_least_response_time,
    "dynamic_cpu": policy_dynamic_cpu,
}

POLICY_LABELS: Dict[str, str] = {
    "round_robin": "Round Robin",
    "random": "Random",
    "least_requests": "Least Requests",
    "least_response_time": "Least Response Time",
    "dynamic_cpu": "Dynamic CPU",
}


def normalize_policy_name(name: str) -> str:
    """
    Normalize a policy name to its registry key.
    Examples: "Round Robin" -> "round_robin"
              "least-response-time" -> "least_response_time"
    """
    key = str(name).strip().lower()
    for ch in (" ", "-"):
        key = key.replace(ch, "_")
    return key


def get_policy(name: str) -> Callable:
    key = normalize_policy_name(name)
    if key not in POLICIES:
        raise InvalidConfiguration(
            f"Unknown policy {name!r}; expected one of {sorted(POLICIES)}"
        )
    return POLICIES[key]


__all__ = [
    "POLICIES",
    "POLICY_LABELS",
    "get_policy",
    "normalize_policy_name",
    "policy_round_robin",
    "policy_random",
    "policy_least_requests",
    "policy_least_response_time",
    "policy_dynamic_cpu",
]
