import numpy as np


def policy_least_requests(servers, cursor, request=None, rng=None):
    """
    Least Requests strategy: pick the server with the fewest active requests.
    If several servers share the minimum, the first one wins.
    """
    if not servers:
        return cursor
    counts = np.array([s.active_count for s in servers], dtype=np.int64)
    return int(np.argmin(counts))
