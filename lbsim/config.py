"""
Simulation configuration: request catalog, run parameters and validation.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


class InvalidConfiguration(ValueError):
    """Raised when a reconfiguration request cannot be honoured."""


@dataclass(frozen=True)
class RequestType:
    cpu: float
    memory: float
    label: str = ""


DEFAULT_REQUEST_TYPES: Tuple[RequestType, ...] = (
    RequestType(cpu=5, memory=3, label="low-cpu/low-mem"),
    RequestType(cpu=8, memory=4, label="mid-cpu/low-mem"),
    RequestType(cpu=4, memory=8, label="low-cpu/mid-mem"),
    RequestType(cpu=10, memory=6, label="high-cpu/mid-mem"),
)

ARRIVAL_PROCESSES = ("uniform", "poisson")


@dataclass
class SimConfig:
    arrival_rate: float = 1.0            # requests per simulated second
    server_count: int = 4
    policy: str = "round_robin"
    run_seconds: float = 60.0
    tick_ms: float = 50.0                # simulated ms per tick
    request_types: Tuple[RequestType, ...] = DEFAULT_REQUEST_TYPES
    history_capacity: int = 50
    service_time_range: Tuple[float, float] = (1.0, 500.0)
    arrival_process: str = "uniform"
    capacity_cpu: float = 100.0
    capacity_memory: float = 100.0
    seed: Optional[int] = None
    record_history: bool = True

    def validate(self) -> "SimConfig":
        """Check every field, raise InvalidConfiguration on the first problem."""
        from .strategies import get_policy

        validate_server_count(self.server_count)
        get_policy(self.policy)
        validate_arrival_rate(self.arrival_rate)

        if self.run_seconds <= 0:
            raise InvalidConfiguration(f"run_seconds must be positive, got {self.run_seconds}")
        if self.tick_ms <= 0:
            raise InvalidConfiguration(f"tick_ms must be positive, got {self.tick_ms}")
        if not isinstance(self.history_capacity, int) or self.history_capacity <= 0:
            raise InvalidConfiguration(
                f"history_capacity must be a positive integer, got {self.history_capacity!r}"
            )
        if self.capacity_cpu <= 0 or self.capacity_memory <= 0:
            raise InvalidConfiguration("server capacities must be positive")

        if not self.request_types:
            raise InvalidConfiguration("request_types catalog is empty")
        for rt in self.request_types:
            if not (0 <= rt.cpu <= self.capacity_cpu):
                raise InvalidConfiguration(f"cpu demand {rt.cpu} outside [0, {self.capacity_cpu}]")
            if not (0 <= rt.memory <= self.capacity_memory):
                raise InvalidConfiguration(
                    f"memory demand {rt.memory} outside [0, {self.capacity_memory}]"
                )

        low, high = self.service_time_range
        if low <= 0 or high < low:
            raise InvalidConfiguration(
                f"service_time_range must satisfy 0 < low <= high, got ({low}, {high})"
            )
        if self.arrival_process not in ARRIVAL_PROCESSES:
            raise InvalidConfiguration(
                f"unknown arrival_process {self.arrival_process!r}, expected one of {ARRIVAL_PROCESSES}"
            )
        return self

    # ================== dict / JSON ================== #
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfiguration(f"unknown configuration keys: {unknown}")

        kwargs = dict(data)
        if "request_types" in kwargs:
            try:
                kwargs["request_types"] = tuple(
                    rt if isinstance(rt, RequestType) else RequestType(**rt)
                    for rt in kwargs["request_types"]
                )
            except TypeError as e:
                raise InvalidConfiguration(f"malformed request_types entry: {e}") from e
        if "service_time_range" in kwargs:
            rng_pair = tuple(kwargs["service_time_range"])
            if len(rng_pair) != 2:
                raise InvalidConfiguration("service_time_range needs exactly two values")
            kwargs["service_time_range"] = rng_pair
        return cls(**kwargs).validate()

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["service_time_range"] = list(self.service_time_range)
        return out


def validate_server_count(n: Any) -> int:
    if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
        raise InvalidConfiguration(f"server count must be a positive integer, got {n!r}")
    return n


def validate_arrival_rate(rate: Any) -> float:
    try:
        rate = float(rate)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"arrival rate must be a number, got {rate!r}") from e
    if not (math.isfinite(rate) and rate >= 0):
        raise InvalidConfiguration(f"arrival rate must be finite and non-negative, got {rate}")
    return rate


def load_config(path: str | Path) -> SimConfig:
    """Read a JSON file into a validated SimConfig."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"{path} must contain a JSON object")
    return SimConfig.from_dict(data)
