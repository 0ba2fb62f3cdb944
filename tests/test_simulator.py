import math

import numpy as np
import pytest

from tipfit.core.types import OUParams
from tipfit.sim.simulator import (
    downsample,
    simulate_ou,
    simulate_tipping,
    stationary_initial_state,
)

A = 0.9
ALPHA0 = 3.0
MU0 = 0.25
M = MU0 - ALPHA0 / (2 * A)
LAMBDA0 = -(ALPHA0**2) / (4 * A)


def test_noise_free_trajectory_is_deterministic():
    kwargs = dict(sigma=0.0, lambda0=LAMBDA0, tau=50.0, m=M, a=A, T0=5.0, x0=MU0 + 0.2, dt=0.01, n_max=4000)
    first = simulate_tipping(**kwargs, rng=np.random.default_rng(1))
    second = simulate_tipping(**kwargs, rng=np.random.default_rng(99))
    np.testing.assert_array_equal(first.path, second.path)
    assert first.elapsed == second.elapsed
    assert first.reason == second.reason


def test_stationary_phase_relaxes_monotonically_to_fixed_point():
    res = simulate_tipping(
        sigma=0.0, lambda0=LAMBDA0, tau=50.0, m=M, a=A, T0=1e9, x0=MU0 + 0.5, dt=0.01, n_max=3000,
        rng=np.random.default_rng(0),
    )
    assert res.reason == "step_cap"
    assert res.path.size == 3000
    assert np.all(np.diff(res.path) <= 0)
    assert np.all(res.path >= MU0)
    assert res.path[-1] == pytest.approx(MU0, abs=1e-6)


def test_ramp_drives_noise_free_state_across_barrier():
    res = simulate_tipping(
        sigma=0.0, lambda0=LAMBDA0, tau=20.0, m=M, a=A, T0=0.0, x0=MU0, dt=0.01, n_max=100000,
        rng=np.random.default_rng(0),
    )
    assert res.reason == "crossed"
    assert res.crossed
    assert res.path[-1] <= M - 2.0
    assert np.all(res.path[:-1] > M - 2.0)
    assert np.all(np.diff(res.path) <= 1e-12)
    assert res.elapsed == pytest.approx((res.path.size - 1) * 0.01)
    # the noise-free escape happens after the fixed point has vanished
    assert res.elapsed > 20.0


def test_step_cap_truncates_trajectory():
    res = simulate_tipping(
        sigma=0.1, lambda0=LAMBDA0, tau=50.0, m=M, a=A, T0=1.0, x0=MU0, dt=0.01, n_max=5,
        rng=np.random.default_rng(0),
    )
    assert res.reason == "step_cap"
    assert res.path.size == 5
    assert res.elapsed == pytest.approx(0.04)


def test_downsample_keeps_every_nloop_point_and_pads():
    path = np.arange(23, dtype=float)
    out = downsample(path, nloop=5, length=8)
    np.testing.assert_array_equal(out[:5], [0.0, 5.0, 10.0, 15.0, 20.0])
    assert np.all(np.isnan(out[5:]))
    assert downsample(np.arange(100.0), nloop=10, length=3).tolist() == [0.0, 10.0, 20.0]


def test_stationary_draws_match_ou_moments():
    ou = OUParams(alpha0=ALPHA0, mu0=MU0, sigma2=0.033)
    rng = np.random.default_rng(3)
    draws = np.array([stationary_initial_state(ou, rng) for _ in range(4000)])
    assert np.mean(draws) == pytest.approx(MU0, abs=0.01)
    assert np.std(draws) == pytest.approx(math.sqrt(0.033 / 6.0), rel=0.1)

    series = simulate_ou(ou, delta=1 / 12, n=200, rng=rng, x0=1.0)
    assert series[0] == 1.0
    assert series.size == 200


def test_simulator_requires_an_explicit_generator():
    with pytest.raises(TypeError):
        simulate_tipping(sigma=0.1, lambda0=LAMBDA0, tau=50.0, m=M, a=A, T0=1.0, x0=MU0, dt=0.01, n_max=5)
