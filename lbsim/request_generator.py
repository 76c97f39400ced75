import numpy as np
from typing import Optional, Sequence, Tuple

from .config import DEFAULT_REQUEST_TYPES, ARRIVAL_PROCESSES, InvalidConfiguration, RequestType
from .models import Request


class RequestGenerator:
    """
    Synthetic request source.
    - request type drawn uniformly from the catalog
    - service duration drawn from U(low, high) simulated ms
    - ids are sequential per generator, reset() restarts them at 0
    """

    def __init__(
        self,
        request_types: Sequence[RequestType] = DEFAULT_REQUEST_TYPES,
        service_time_range: Tuple[float, float] = (1.0, 500.0),
        arrival_process: str = "uniform",
        rng: Optional[np.random.Generator] = None,
    ):
        if not request_types:
            raise InvalidConfiguration("request_types must not be empty")
        if arrival_process not in ARRIVAL_PROCESSES:
            raise InvalidConfiguration(f"Unknown arrival process: {arrival_process}")
        self.request_types = tuple(request_types)
        self.service_low, self.service_high = (float(x) for x in service_time_range)
        self.arrival_process = arrival_process
        self.rng = rng if rng is not None else np.random.default_rng()
        self.next_id = 0
        self._credit = 0.0  # fractional arrivals carried between ticks

    def generate(self, now: float = 0.0) -> Request:
        rt = self.request_types[int(self.rng.integers(len(self.request_types)))]
        duration = float(self.rng.uniform(self.service_low, self.service_high))
        req = Request(
            id=self.next_id,
            cpu_demand=float(rt.cpu),
            memory_demand=float(rt.memory),
            service_duration=duration,
            arrival_time=float(now),
        )
        self.next_id += 1
        return req

    def arrivals_for_tick(self, rate_per_sec: float, tick_ms: float) -> int:
        """
        Number of arrivals in one tick of tick_ms at rate_per_sec.
        uniform: evenly spaced, fractional remainder carried to later ticks.
        poisson: independent Poisson draw with mean rate * dt.
        """
        expected = rate_per_sec * tick_ms / 1000.0
        if expected <= 0:
            return 0
        if self.arrival_process == "poisson":
            return int(self.rng.poisson(expected))
        # rounded so repeated float increments cannot fall just short of a whole arrival
        self._credit = round(self._credit + expected, 9)
        n = int(self._credit)
        self._credit -= n
        return n

    def reset(self):
        self.next_id = 0
        self._credit = 0.0
