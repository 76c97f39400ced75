import numpy as np

NO_HISTORY_PENALTY = 100.0  # per active request, for servers with no completions


def policy_least_response_time(servers, cursor, request=None, rng=None):
    """
    Least Response Time strategy: pick the server with the lowest average
    response time. A server with no completions yet scores
    active_count * NO_HISTORY_PENALTY instead of 0, so idle history does not
    make it win unconditionally. Lower index wins ties.
    """
    if not servers:
        return cursor
    scores = np.empty(len(servers), dtype=np.float64)
    for i, s in enumerate(servers):
        avg = s.average_response_time
        scores[i] = s.active_count * NO_HISTORY_PENALTY if avg == 0 else avg
    return int(np.argmin(scores))
