"""Request and server models."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Request:
    """
    One unit of synthetic work.

    Attributes:
        id: sequential id assigned by the generator
        cpu_demand: CPU share in percent (0-100)
        memory_demand: memory share in percent (0-100)
        service_duration: simulated ms the request occupies its server
        arrival_time: simulated ms at creation
    """
    id: int
    cpu_demand: float
    memory_demand: float
    service_duration: float
    arrival_time: float = 0.0

    def elapsed(self, now: float) -> float:
        return now - self.arrival_time

    def is_complete(self, now: float) -> bool:
        return self.elapsed(now) >= self.service_duration

    def progress(self, now: float) -> float:
        if self.service_duration <= 0:
            return 1.0
        return min(1.0, max(0.0, self.elapsed(now) / self.service_duration))


@dataclass(frozen=True)
class ServerSnapshot:
    cpu_load: float
    memory_load: float
    active_count: int
    avg_response_time: float
    rejected_count: int
    completed_count: int


@dataclass
class Server:
    """Capacity-bounded host for active requests."""
    capacity_cpu: float = 100.0
    capacity_memory: float = 100.0
    active_requests: List[Request] = field(default_factory=list)
    completed_count: int = 0
    cumulative_response_time: float = 0.0
    rejected_count: int = 0

    @property
    def cpu_load(self) -> float:
        return sum(r.cpu_demand for r in self.active_requests)

    @property
    def memory_load(self) -> float:
        return sum(r.memory_demand for r in self.active_requests)

    @property
    def active_count(self) -> int:
        return len(self.active_requests)

    @property
    def average_response_time(self) -> float:
        if self.completed_count == 0:
            return 0.0
        return self.cumulative_response_time / self.completed_count

    def can_admit(self, request: Request) -> bool:
        return (self.cpu_load + request.cpu_demand <= self.capacity_cpu
                and self.memory_load + request.memory_demand <= self.capacity_memory)

    def admit(self, request: Request):
        if not self.can_admit(request):
            raise AssertionError(
                f"request {request.id} exceeds capacity "
                f"(cpu {self.cpu_load}+{request.cpu_demand}/{self.capacity_cpu}, "
                f"mem {self.memory_load}+{request.memory_demand}/{self.capacity_memory})"
            )
        self.active_requests.append(request)

    def reclaim(self, now: float) -> List[Request]:
        """Drop finished requests and account for them. Returns what completed."""
        done = [r for r in self.active_requests if r.is_complete(now)]
        if not done:
            return done
        self.active_requests = [r for r in self.active_requests if not r.is_complete(now)]
        for r in done:
            self.completed_count += 1
            self.cumulative_response_time += r.service_duration
        return done

    def record_rejection(self):
        self.rejected_count += 1

    def reset(self):
        self.active_requests = []
        self.completed_count = 0
        self.cumulative_response_time = 0.0
        self.rejected_count = 0

    def snapshot(self) -> ServerSnapshot:
        return ServerSnapshot(
            cpu_load=self.cpu_load,
            memory_load=self.memory_load,
            active_count=self.active_count,
            avg_response_time=self.average_response_time,
            rejected_count=self.rejected_count,
            completed_count=self.completed_count,
        )
