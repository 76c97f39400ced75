import numpy as np


def policy_dynamic_cpu(servers, cursor, request=None, rng=None):
    """Dynamic CPU strategy: pick the server with the lowest current CPU load (lower index on ties)."""
    if not servers:
        return cursor
    cpu = np.array([s.cpu_load for s in servers], dtype=np.float64)
    return int(np.argmin(cpu))
