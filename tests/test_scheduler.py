import math

import pytest

from helpers import make_request
from lbsim import Admitted, InvalidConfiguration, Rejected
from lbsim.strategies import POLICIES


def test_round_robin_eleven_requests_on_four_servers(sim_factory):
    sim = sim_factory(server_count=4, policy="round_robin")
    results = [sim.submit(make_request(rid=i, cpu=10, mem=6, duration=1e6)) for i in range(11)]

    assert all(isinstance(r, Admitted) for r in results)
    assert [r.server_index for r in results[:5]] == [0, 1, 2, 3, 0]
    assert [s.active_count for s in sim.servers] == [3, 3, 3, 2]
    assert sim.servers[0].cpu_load == 30
    assert sim.total_rejected == 0


def test_second_request_rejected_when_capacity_exceeded(sim_factory):
    sim = sim_factory(server_count=1)
    first = sim.submit(make_request(rid=0, cpu=60, mem=10))
    second = sim.submit(make_request(rid=1, cpu=50, mem=10))

    assert first == Admitted(server_index=0)
    assert second == Rejected(server_index=0, reason="capacity")
    assert sim.servers[0].rejected_count == 1
    assert sim.total_rejected == 1
    assert sim.servers[0].cpu_load == 60


@pytest.mark.parametrize("n_servers,m", [(3, 12), (4, 40), (5, 5)])
def test_round_robin_fairness(sim_factory, n_servers, m):
    sim = sim_factory(server_count=n_servers, policy="round_robin")
    for i in range(m):
        sim.submit(make_request(rid=i, cpu=1, mem=1, duration=1e6))
    assert [s.active_count for s in sim.servers] == [m // n_servers] * n_servers


def test_out_of_range_policy_index_is_rejected(sim_factory):
    sim = sim_factory(server_count=2)
    sim.policy_fn = lambda servers, cursor, request=None, rng=None: 7
    seen = []
    sim.on_request_rejected(lambda req, idx: seen.append(idx))

    result = sim.submit(make_request())
    assert result == Rejected(server_index=7, reason="out_of_range")
    assert sim.total_rejected == 1
    assert [s.rejected_count for s in sim.servers] == [0, 0]
    assert seen == [7]


def test_cursor_advances_only_on_admission(sim_factory):
    sim = sim_factory(server_count=2, policy="least_requests")
    sim.submit(make_request(rid=0, cpu=100, mem=1, duration=1e6))
    assert sim.cursor == 1
    sim.submit(make_request(rid=1, cpu=100, mem=1, duration=1e6))
    assert sim.cursor == 0
    sim.submit(make_request(rid=2, cpu=100, mem=1))
    assert sim.cursor == 0
    assert sim.total_rejected == 1


def test_tick_reclaims_before_admitting(sim_factory):
    sim = sim_factory(server_count=1, tick_ms=50)
    completed = []
    sim.on_request_completed(lambda req, idx: completed.append((req.id, idx)))
    sim.submit(make_request(rid=0, cpu=100, mem=100, duration=100.0, arrival=0.0))

    sim.tick()
    assert completed == []
    sim.set_arrival_rate(20.0)   # one arrival per 50 ms tick
    sim.tick()                   # clock 100: request 0 done, then new arrival fits
    assert completed == [(0, 0)]
    assert sim.servers[0].completed_count == 1
    assert sim.servers[0].cumulative_response_time == 100.0
    assert sim.total_rejected == 0
    assert sim.total_admitted == 2


@pytest.mark.parametrize("policy", sorted(POLICIES))
def test_capacity_invariant_under_overload(sim_factory, policy):
    sim = sim_factory(server_count=4, policy=policy, arrival_rate=400.0, tick_ms=50)
    for _ in range(100):
        sim.tick()
        for s in sim.servers:
            assert s.cpu_load <= s.capacity_cpu
            assert s.memory_load <= s.capacity_memory
    assert sim.total_rejected > 0
    assert sim.total_admitted + sim.total_rejected == sim.arrival_count


@pytest.mark.parametrize("policy", ["round_robin", "random"])
def test_scanning_policies_reject_only_when_no_server_fits(sim_factory, policy):
    sim = sim_factory(server_count=3, policy=policy, arrival_rate=300.0)
    bad = []

    @sim.on_request_rejected
    def check(req, idx):
        if any(s.can_admit(req) for s in sim.servers):
            bad.append(req.id)

    sim.run(duration_s=5)
    assert sim.total_rejected > 0
    assert bad == []


def test_counters_are_monotonic(sim_factory):
    sim = sim_factory(server_count=2, arrival_rate=150.0)
    prev = [(0, 0.0, 0)] * 2
    for _ in range(60):
        sim.tick()
        cur = [(s.completed_count, s.cumulative_response_time, s.rejected_count) for s in sim.servers]
        for (c0, t0, r0), (c1, t1, r1) in zip(prev, cur):
            assert c1 >= c0 and t1 >= t0 and r1 >= r0
        prev = cur


def test_snapshot_is_idempotent(sim_factory):
    sim = sim_factory(arrival_rate=50.0)
    for _ in range(10):
        sim.tick()
    assert sim.get_server_snapshot() == sim.get_server_snapshot()


def test_run_tick_count_and_arrivals(sim_factory):
    sim = sim_factory(arrival_rate=10.0, tick_ms=100)
    summary = sim.run(duration_s=1.0)
    assert summary["ticks"] == 10
    assert summary["arrivals"] == 10
    assert summary["sim_seconds"] == pytest.approx(1.0)
    assert len(sim.get_balance_history()) == 10
    assert not sim.running


def test_stop_halts_the_tick_source(sim_factory):
    sim = sim_factory(arrival_rate=10.0, tick_ms=100)
    sim.on_request_admitted(lambda req, idx: sim.stop())
    summary = sim.run(duration_s=5.0)
    assert summary["ticks"] == 1


def test_balance_history_is_bounded(sim_factory):
    sim = sim_factory(history_capacity=5, arrival_rate=20.0)
    for _ in range(12):
        sim.tick()
    history = sim.get_balance_history()
    assert len(history) == 5
    assert history[0].time < history[-1].time
    assert all(0 <= h.cpu_balance <= 100 for h in history)


def test_set_server_count_replaces_servers(sim_factory):
    sim = sim_factory(server_count=4)
    sim.submit(make_request(duration=1e6))
    sim.set_server_count(6)
    assert sim.n_servers == 6
    assert all(s.active_count == 0 for s in sim.servers)
    assert sim.cursor == 0


@pytest.mark.parametrize("bad", [0, -1, 2.5, "3", True])
def test_set_server_count_rejects_bad_values(sim_factory, bad):
    sim = sim_factory(server_count=4)
    with pytest.raises(InvalidConfiguration):
        sim.set_server_count(bad)
    assert sim.n_servers == 4


def test_set_policy_swaps_without_touching_state(sim_factory):
    sim = sim_factory(server_count=3)
    sim.submit(make_request(duration=1e6))
    sim.set_policy("Least Requests")
    assert sim.policy_name == "least_requests"
    assert sim.servers[0].active_count == 1
    assert sim.submit(make_request(rid=1)).server_index == 1

    with pytest.raises(InvalidConfiguration):
        sim.set_policy("fastest")
    assert sim.policy_name == "least_requests"


def test_set_arrival_rate_rejects_negative(sim_factory):
    sim = sim_factory()
    with pytest.raises(InvalidConfiguration):
        sim.set_arrival_rate(-1)
    with pytest.raises(InvalidConfiguration):
        sim.set_arrival_rate(float("nan"))
    with pytest.raises(InvalidConfiguration):
        sim.set_arrival_rate(float("inf"))
    assert sim.arrival_rate == 0.0


def test_reset_clears_state(sim_factory):
    sim = sim_factory(server_count=2, arrival_rate=300.0)
    sim.run(duration_s=2)
    assert sim.total_rejected > 0

    sim.reset()
    assert sim.n_servers == 2
    assert sim.arrival_count == 0
    assert sim.total_rejected == 0
    assert sim.clock == 0.0
    assert sim.get_balance_history() == []
    for snap in sim.get_server_snapshot():
        assert snap.active_count == 0
        assert snap.rejected_count == 0
        assert snap.completed_count == 0
    assert sim.generator.generate().id == 0


def test_independent_instances_share_no_counters(sim_factory):
    a = sim_factory(arrival_rate=20.0)
    b = sim_factory(arrival_rate=20.0)
    a.run(duration_s=1)
    assert b.arrival_count == 0
    assert b.generator.next_id == 0


def test_same_seed_same_run(sim_factory):
    a = sim_factory(policy="random", arrival_rate=100.0, arrival_process="poisson", seed=7)
    b = sim_factory(policy="random", arrival_rate=100.0, arrival_process="poisson", seed=7)
    assert a.run(duration_s=3) == b.run(duration_s=3)


def test_summary_fields(sim_factory):
    sim = sim_factory(arrival_rate=40.0)
    s = sim.run(duration_s=2)
    assert s["policy"] == "round_robin"
    assert s["admitted"] + s["rejected"] == s["arrivals"]
    assert 0.0 <= s["rejection_rate"] <= 1.0
    assert 0.0 <= s["avg_cpu_balance"] <= 100.0
    assert sum(s["completed_per_server"]) == s["completed"]
    assert not math.isnan(s["avg_response_time"])


@pytest.mark.parametrize("rate,tick_ms,duration_s,expected", [(3.0, 100, 1.0, 3), (7.0, 30, 3.0, 21)])
def test_uniform_arrivals_match_configured_rate(sim_factory, rate, tick_ms, duration_s, expected):
    sim = sim_factory(arrival_rate=rate, tick_ms=tick_ms)
    assert sim.run(duration_s=duration_s)["arrivals"] == expected


def test_summary_balance_does_not_depend_on_record_history(sim_factory):
    kwargs = dict(policy="least_response_time", arrival_rate=200.0, seed=0)
    with_hist = sim_factory(record_history=True, **kwargs).run(duration_s=2)
    without_hist = sim_factory(record_history=False, **kwargs).run(duration_s=2)

    assert without_hist["avg_cpu_balance"] == pytest.approx(with_hist["avg_cpu_balance"])
    assert without_hist["avg_memory_balance"] == pytest.approx(with_hist["avg_memory_balance"])
    assert with_hist["avg_cpu_balance"] < 100.0


def test_rejection_rate_counts_direct_submissions(sim_factory):
    sim = sim_factory(server_count=1)
    sim.submit(make_request(rid=0, cpu=60, mem=10, duration=1e6))
    for i in range(1, 4):
        sim.submit(make_request(rid=i, cpu=50, mem=10))
    s = sim.summary()
    assert s["arrivals"] == 0
    assert s["rejection_rate"] == pytest.approx(0.75)
