from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

import numpy as np

from .config import SimConfig, InvalidConfiguration, validate_server_count, validate_arrival_rate
from .models import Request, Server, ServerSnapshot
from .request_generator import RequestGenerator
from .statistics import StatisticsEngine, BalanceSample
from .strategies import get_policy, normalize_policy_name

logger = logging.getLogger(__name__)

Hook = Callable[[Request, int], None]


@dataclass(frozen=True)
class Admitted:
    server_index: int
    admitted = True


@dataclass(frozen=True)
class Rejected:
    server_index: int
    reason: str = "capacity"  # "capacity" | "out_of_range"
    admitted = False


AdmissionResult = Union[Admitted, Rejected]


class AdmissionSim:
    """
    Tick-driven admission-control simulator:
    - each tick: reclaim finished requests, admit new arrivals, sample stats
    - policy_fn proposes a server, the capacity check here has the final word
    - rejected requests are counted and dropped, never retried
    """

    def __init__(
        self,
        config: Optional[SimConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = (config if config is not None else SimConfig()).validate()
        cfg = self.config
        self.rng = rng if rng is not None else np.random.default_rng(cfg.seed)

        # Basic configuration
        self.tick_ms = float(cfg.tick_ms)
        self.arrival_rate = float(cfg.arrival_rate)
        self.policy_name = normalize_policy_name(cfg.policy)
        self.policy_fn = get_policy(cfg.policy)

        self.generator = RequestGenerator(
            request_types=cfg.request_types,
            service_time_range=cfg.service_time_range,
            arrival_process=cfg.arrival_process,
            rng=self.rng,
        )
        self.stats = StatisticsEngine(cfg.history_capacity, record_history=cfg.record_history)

        # Server state
        self.servers: List[Server] = []
        self.cursor = 0
        self._build_servers(cfg.server_count)

        # Counters
        self.clock = 0.0
        self.step_idx = 0
        self.arrival_count = 0
        self.total_admitted = 0
        self.total_rejected = 0
        self.total_completed = 0

        self._running = False
        self._hooks: Dict[str, List[Hook]] = {"admitted": [], "rejected": [], "completed": []}

    # ================== internal helpers ================== #
    def _build_servers(self, n: int):
        self.servers = [
            Server(capacity_cpu=self.config.capacity_cpu, capacity_memory=self.config.capacity_memory)
            for _ in range(n)
        ]
        self.cursor = 0

    def _fire(self, event: str, request: Request, server_index: int):
        for cb in self._hooks[event]:
            cb(request, server_index)

    @property
    def n_servers(self) -> int:
        return len(self.servers)

    # ================== hooks ================== #
    def on_request_admitted(self, cb: Hook) -> Hook:
        self._hooks["admitted"].append(cb)
        return cb

    def on_request_rejected(self, cb: Hook) -> Hook:
        self._hooks["rejected"].append(cb)
        return cb

    def on_request_completed(self, cb: Hook) -> Hook:
        self._hooks["completed"].append(cb)
        return cb

    # ================== admission ================== #
    def submit(self, request: Request) -> AdmissionResult:
        """Route one request through the active policy and the capacity check."""
        n = self.n_servers
        idx = self.policy_fn(self.servers, self.cursor, request=request, rng=self.rng)
        try:
            idx = int(idx)
        except (TypeError, ValueError):
            idx = -1

        if not (0 <= idx < n):
            self.total_rejected += 1
            logger.warning(
                f"policy {self.policy_name} returned index {idx} outside [0, {n}); "
                f"request {request.id} rejected"
            )
            self._fire("rejected", request, idx)
            return Rejected(server_index=idx, reason="out_of_range")

        server = self.servers[idx]
        if server.can_admit(request):
            server.admit(request)
            self.cursor = (idx + 1) % n
            self.total_admitted += 1
            self._fire("admitted", request, idx)
            return Admitted(server_index=idx)

        server.record_rejection()
        self.total_rejected += 1
        logger.debug(
            f"request {request.id} (cpu={request.cpu_demand}, mem={request.memory_demand}) "
            f"rejected by server {idx} (cpu={server.cpu_load}, mem={server.memory_load})"
        )
        self._fire("rejected", request, idx)
        return Rejected(server_index=idx, reason="capacity")

    def create_request(self) -> AdmissionResult:
        """Generate one arrival at the current clock and submit it."""
        request = self.generator.generate(now=self.clock)
        self.arrival_count += 1
        return self.submit(request)

    def reclaim(self) -> int:
        """Remove finished requests from every server. Returns how many completed."""
        finished = 0
        for gid, server in enumerate(self.servers):
            done = server.reclaim(self.clock)
            for req in done:
                self._fire("completed", req, gid)
            finished += len(done)
        self.total_completed += finished
        return finished

    # ================== main loop ================== #
    def tick(self) -> Dict[str, object]:
        self.clock += self.tick_ms
        self.step_idx += 1

        self.reclaim()
        n_new = self.generator.arrivals_for_tick(self.arrival_rate, self.tick_ms)
        for _ in range(n_new):
            self.create_request()
        return self.stats.sample(self.servers, now=self.clock)

    def run(self, duration_s: Optional[float] = None, verbose: bool = False) -> Dict[str, object]:
        """
        Run ticks for duration_s simulated seconds (config.run_seconds by default)
        or until stop() is called. Requests still active at the end are dropped
        without completion accounting. Returns summary metrics.
        """
        duration_s = self.config.run_seconds if duration_s is None else float(duration_s)
        if duration_s <= 0:
            raise InvalidConfiguration(f"run duration must be positive, got {duration_s}")
        n_ticks = int(math.ceil(duration_s * 1000.0 / self.tick_ms))

        self._running = True
        for _ in range(n_ticks):
            if not self._running:
                break
            self.tick()
            if verbose and self.step_idx % 100 == 0:
                logger.info(
                    f"step {self.step_idx:>5d}, t={self.clock / 1000.0:8.2f}s, "
                    f"admitted={self.total_admitted}, rejected={self.total_rejected}"
                )
        self._running = False
        return self.summary()

    def stop(self):
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # ================== reconfiguration ================== #
    def set_server_count(self, n: int):
        validate_server_count(n)
        self._build_servers(n)
        logger.info(f"server count set to {n}")

    def set_policy(self, name: str):
        fn = get_policy(name)
        self.policy_fn = fn
        self.policy_name = normalize_policy_name(name)
        logger.info(f"policy set to {self.policy_name}")

    def set_arrival_rate(self, rate: float):
        self.arrival_rate = validate_arrival_rate(rate)
        logger.info(f"arrival rate set to {self.arrival_rate} req/s")

    def reset(self):
        for server in self.servers:
            server.reset()
        self.cursor = 0
        self.clock = 0.0
        self.step_idx = 0
        self.arrival_count = 0
        self.total_admitted = 0
        self.total_rejected = 0
        self.total_completed = 0
        self.generator.reset()
        self.stats.clear()
        logger.info("simulation reset")

    # ================== consumer surface ================== #
    def get_server_snapshot(self) -> List[ServerSnapshot]:
        return [s.snapshot() for s in self.servers]

    def get_balance_history(self) -> List[BalanceSample]:
        return self.stats.history.samples()

    def summary(self) -> Dict[str, object]:
        cpu_bal, mem_bal = self.stats.mean_balance()
        decided = self.total_admitted + self.total_rejected
        completed = np.array([s.completed_count for s in self.servers], dtype=np.int64)
        resp = np.array([s.cumulative_response_time for s in self.servers], dtype=np.float64)
        avg_resp = float(resp.sum() / completed.sum()) if completed.sum() else 0.0

        return dict(
            policy=self.policy_name,
            ticks=self.step_idx,
            sim_seconds=self.clock / 1000.0,
            arrivals=self.arrival_count,
            admitted=self.total_admitted,
            rejected=self.total_rejected,
            completed=self.total_completed,
            rejection_rate=(self.total_rejected / decided) if decided else 0.0,
            avg_cpu_balance=float(cpu_bal),
            avg_memory_balance=float(mem_bal),
            avg_response_time=avg_resp,
            completed_per_server=completed.tolist(),
        )
