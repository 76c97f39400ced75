def policy_round_robin(servers, cursor, request=None, rng=None):
    """
    Round Robin strategy: scan servers circularly starting at cursor and
    return the first one that can take the request.
    Without a request every server qualifies, so this is simply the cursor.
    If a full cycle finds nothing, return the cursor unchanged and let the
    admission check reject it.
    """
    n = len(servers)
    if n == 0:
        return cursor
    for i in range(n):
        idx = (cursor + i) % n
        if request is None or servers[idx].can_admit(request):
            return idx
    return cursor
