import numpy as np


def policy_random(servers, cursor, request=None, rng=None):
    """
    Random strategy: try servers in a random order without replacement and
    return the first admissible one. If none fits, return a uniformly random
    index anyway (it will be rejected downstream).
    """
    n = len(servers)
    if n == 0:
        return cursor
    if rng is None:
        rng = np.random.default_rng()

    for idx in rng.permutation(n):
        idx = int(idx)
        if request is None or servers[idx].can_admit(request):
            return idx
    return int(rng.integers(n))
