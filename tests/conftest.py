import pytest

from lbsim import AdmissionSim, SimConfig


@pytest.fixture
def sim_factory():
    def _make(**kwargs):
        kwargs.setdefault("seed", 0)
        kwargs.setdefault("arrival_rate", 0.0)
        return AdmissionSim(SimConfig(**kwargs))
    return _make
