import matplotlib

matplotlib.use("Agg")

import pytest

from elastofem.config import ProblemConfig, SolverConfig


@pytest.fixture
def direct_config():
    return ProblemConfig(solver=SolverConfig(method="direct"))
