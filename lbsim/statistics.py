from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np


def compute_stats(values: Sequence[float], decimals: Optional[int] = None) -> Dict[str, float]:
    """mean / variance / std_dev / min / max, population variance (divide by N)."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        out = dict(mean=0.0, variance=0.0, std_dev=0.0, min=0.0, max=0.0)
    else:
        var = float(arr.var())  # ddof=0
        out = dict(
            mean=float(arr.mean()),
            variance=var,
            std_dev=math.sqrt(var),
            min=float(arr.min()),
            max=float(arr.max()),
        )
    if decimals is not None:
        out = {k: round(v, decimals) for k, v in out.items()}
    return out


def balance_score(values: Sequence[float]) -> int:
    """
    Worst-case deviation fairness score in [0, 100].
    0 deviation from the mean scores 100, a server deviating by twice the
    mean scores 0. Empty or all-zero input is perfectly balanced.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return 100
    mean = float(arr.mean())
    if mean == 0:
        return 100
    max_dev = float(np.abs(arr - mean).max())
    score = max(0.0, 100.0 * (1.0 - max_dev / (2.0 * mean)))
    # round half up, not to even
    return int(math.floor(score + 0.5))


@dataclass(frozen=True)
class BalanceSample:
    time: float
    cpu_balance: int
    memory_balance: int


class BalanceHistory:
    """Fixed-capacity FIFO of balance samples, oldest first."""

    def __init__(self, capacity: int = 50):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self._buf: deque[BalanceSample] = deque(maxlen=self.capacity)

    def append(self, sample: BalanceSample):
        self._buf.append(sample)

    def clear(self):
        self._buf.clear()

    def samples(self) -> List[BalanceSample]:
        return list(self._buf)

    def __len__(self) -> int:
        return len(self._buf)

    def __iter__(self) -> Iterator[BalanceSample]:
        return iter(list(self._buf))


class StatisticsEngine:
    """
    Samples server loads once per tick.
    - the bounded BalanceHistory is what presentation layers read
    - with record_history=True the full per-tick load vectors and balance
      scores are also kept for run-level metrics and plots
    """

    def __init__(self, history_capacity: int = 50, record_history: bool = True):
        self.history = BalanceHistory(history_capacity)
        self.record_hist = record_history
        self.hist_times: List[float] = []
        self.hist_cpu_loads: List[np.ndarray] = []
        self.hist_memory_loads: List[np.ndarray] = []
        self.hist_cpu_balance: List[int] = []
        self.hist_memory_balance: List[int] = []
        # running totals, kept regardless of record_history
        self.n_samples = 0
        self.cpu_balance_sum = 0.0
        self.memory_balance_sum = 0.0

    def sample(self, servers, now: float = 0.0) -> Dict[str, object]:
        cpu = np.array([s.cpu_load for s in servers], dtype=np.float64)
        mem = np.array([s.memory_load for s in servers], dtype=np.float64)

        cpu_bal = balance_score(cpu)
        mem_bal = balance_score(mem)
        self.history.append(BalanceSample(time=float(now), cpu_balance=cpu_bal, memory_balance=mem_bal))
        self.n_samples += 1
        self.cpu_balance_sum += cpu_bal
        self.memory_balance_sum += mem_bal

        if self.record_hist:
            self.hist_times.append(float(now))
            self.hist_cpu_loads.append(cpu)
            self.hist_memory_loads.append(mem)
            self.hist_cpu_balance.append(cpu_bal)
            self.hist_memory_balance.append(mem_bal)

        return dict(
            time=float(now),
            cpu_stats=compute_stats(cpu),
            memory_stats=compute_stats(mem),
            cpu_balance=cpu_bal,
            memory_balance=mem_bal,
        )

    def mean_balance(self) -> Tuple[float, float]:
        """Average (cpu, memory) balance over every sample since the last clear()."""
        if self.n_samples == 0:
            return 100.0, 100.0
        return self.cpu_balance_sum / self.n_samples, self.memory_balance_sum / self.n_samples

    def clear(self):
        self.history.clear()
        self.hist_times.clear()
        self.hist_cpu_loads.clear()
        self.hist_memory_loads.clear()
        self.hist_cpu_balance.clear()
        self.hist_memory_balance.clear()
        self.n_samples = 0
        self.cpu_balance_sum = 0.0
        self.memory_balance_sum = 0.0
