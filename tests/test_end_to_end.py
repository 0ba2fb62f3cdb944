import numpy as np
import pandas as pd

from tipfit.core.pipeline import estimate_replicates, estimates_frame
from tipfit.core.types import EstimationSettings
from tipfit.data.io import table_to_traces
from tipfit.sim.datasets import generate_dataset

SETTINGS = EstimationSettings(t0=1924.0, delta=1 / 12, start=1870.0)
TRUTH = {"alpha0": 3.0, "mu0": 0.25, "s2": 0.033, "tau": 130.0, "a": 0.9}


def _monthly_dataset(seed: int) -> pd.DataFrame:
    model = {
        "n_replicates": 5,
        "n_obs": 649 + 1000,
        "nloop": 10,
        "ou": {"alpha0": TRUTH["alpha0"], "mu0": TRUTH["mu0"], "sigma2": TRUTH["s2"]},
        "tipping": {"tau": TRUTH["tau"], "a": TRUTH["a"]},
    }
    return generate_dataset(model, SETTINGS, np.random.default_rng(seed)).data


def test_monthly_replicates_recover_generating_parameters():
    traces = table_to_traces(_monthly_dataset(seed=2024), SETTINGS)
    table = estimates_frame(estimate_replicates(traces, SETTINGS, pen=0.0))
    med = table.median()

    assert abs(med["alpha0"] - TRUTH["alpha0"]) / TRUTH["alpha0"] < 0.3
    assert abs(med["mu0"] - TRUTH["mu0"]) / TRUTH["mu0"] < 0.1
    assert abs(med["s2"] - TRUTH["s2"]) / TRUTH["s2"] < 0.1
    assert abs(med["tau"] - TRUTH["tau"]) / TRUTH["tau"] < 0.3
    assert abs(med["a"] - TRUTH["a"]) / TRUTH["a"] < 0.4
    np.testing.assert_allclose(table["tc"], SETTINGS.t0 + table["tau"])
