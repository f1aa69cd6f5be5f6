import logging
import math

import numpy as np
import pytest
from scipy.stats import norm

from mcpricer import (
    AsianPricer,
    CallPayoff,
    EulerScheme,
    GeometricAverage,
    MediatorState,
    MonteCarloMediator,
    SimulationParts,
    default_parts,
    discount_factor,
    make_pricer,
)

from conftest import ConstantSource, RecordingPricer, ZeroDiffusionProcess


def _black_scholes_call(s0, k, r, sigma, t):
    d1 = (math.log(s0 / k) + (r + 0.5 * sigma ** 2) * t) / (sigma * math.sqrt(t))
    d2 = d1 - sigma * math.sqrt(t)
    return s0 * norm.cdf(d1) - k * math.exp(-r * t) * norm.cdf(d2)


@pytest.fixture
def mediator(textbook_params):
    """Small seeded mediator on the default parts."""
    return MonteCarloMediator(default_parts(textbook_params, n_steps=10, seed=42), n_paths=250, batch_size=64)


class TestLifecycle:
    """Test the mediator state machine"""

    def test_invalid_path_count(self, textbook_params):
        """Test at least one path is required"""
        with pytest.raises(ValueError, match="n_paths"):
            MonteCarloMediator(default_parts(textbook_params, 10), n_paths=0)

    def test_scheme_must_wrap_process(self, textbook_params):
        """Test a scheme built on another process is rejected"""
        process = ZeroDiffusionProcess(textbook_params)
        other = ZeroDiffusionProcess(textbook_params.with_overrides(initial_value=100.0))
        with pytest.raises(ValueError, match="scheme"):
            MonteCarloMediator(SimulationParts(process, EulerScheme(other, 4), ConstantSource(0.0)), n_paths=2)

    def test_states(self, mediator):
        """Test CONFIGURED -> FINISHED"""
        assert mediator.state is MediatorState.CONFIGURED
        mediator.run()
        assert mediator.state is MediatorState.FINISHED

    def test_second_run_rejected(self, mediator):
        """Test a mediator runs once"""
        mediator.run()
        with pytest.raises(RuntimeError):
            mediator.run()

    def test_subscribe_after_finish_rejected(self, mediator, recording_pricer):
        """Test subscriptions are frozen after the run"""
        mediator.run()
        with pytest.raises(RuntimeError):
            mediator.subscribe(recording_pricer)

    def test_duplicate_subscription_ignored(self, mediator, recording_pricer):
        """Test subscribing twice keeps one entry"""
        mediator.subscribe(recording_pricer)
        mediator.subscribe(recording_pricer)
        assert mediator.subscribers == (recording_pricer,)
        mediator.run()
        assert recording_pricer.n_updates == 250

    def test_unsubscribe(self, mediator, recording_pricer):
        """Test removed pricers receive nothing"""
        mediator.subscribe(recording_pricer)
        mediator.unsubscribe(recording_pricer)
        mediator.run()
        assert recording_pricer.n_updates == 0
        assert recording_pricer.n_finalize == 0

    def test_unsubscribe_unknown(self, mediator, recording_pricer):
        """Test unsubscribing an unknown pricer fails"""
        with pytest.raises(ValueError):
            mediator.unsubscribe(recording_pricer)

    def test_subscribe_during_publish_rejected(self, mediator):
        """Test a pricer cannot change subscriptions from process_path"""
        errors = []

        class Meddler(RecordingPricer):
            def process_path(self, path):
                super().process_path(path)
                try:
                    mediator.subscribe(RecordingPricer())
                except RuntimeError as exc:
                    errors.append(exc)

        meddler = Meddler(keep_paths=False)
        mediator.subscribe(meddler)
        mediator.run()
        assert len(errors) == meddler.n_updates == 250
        assert mediator.subscribers == (meddler,)

    def test_subscribe_between_batches(self, mediator):
        """Test a sequential run accepts new pricers between batches"""
        late = RecordingPricer(keep_paths=False)

        def _progress(completed, total):
            if late not in mediator.subscribers and completed < total:
                mediator.subscribe(late)

        mediator.run(progress_callback=_progress)
        assert 0 < late.n_updates < 250
        assert late.n_finalize == 1

    def test_subscribe_after_last_path_rejected(self, mediator):
        """Test the completion callback cannot add a pricer that saw no paths"""
        call = make_pricer("european_call", 65.0, 1.0)
        put = make_pricer("european_put", 65.0, 1.0)
        errors = []

        def _progress(completed, total):
            if completed == total:
                try:
                    mediator.subscribe(put)
                except RuntimeError as exc:
                    errors.append(exc)

        mediator.subscribe(call)
        results = mediator.run(progress_callback=_progress)
        assert len(errors) == 1
        assert mediator.subscribers == (call,)
        assert [r.name for r in results] == ["european_call"]
        assert mediator.results == results
        assert not put.finalized


class TestPublishing:
    """Test path generation and delivery"""

    def test_update_and_finalize_counts(self, mediator):
        """Test every pricer sees every path and finalizes once"""
        pricers = [RecordingPricer(keep_paths=False) for _ in range(3)]
        for p in pricers:
            mediator.subscribe(p)
        results = mediator.run()
        assert results == [250, 250, 250]
        assert all(p.n_updates == 250 and p.n_finalize == 1 for p in pricers)

    def test_paths_shape_and_start(self, mediator, recording_pricer):
        """Test paths have n_steps + 1 points and start at the initial value"""
        mediator.subscribe(recording_pricer)
        mediator.run()
        paths = np.array(recording_pricer.paths)
        assert paths.shape == (250, 11)
        assert np.all(paths[:, 0] == 60.0)
        assert len({tuple(p) for p in paths}) == 250

    def test_paths_read_only(self, mediator, recording_pricer):
        """Test published paths cannot be written"""
        mediator.subscribe(recording_pricer)
        mediator.run()
        assert not any(recording_pricer.writeable)

    def test_zero_steps(self, textbook_params, recording_pricer):
        """Test zero steps publish the single-point path"""
        med = MonteCarloMediator(default_parts(textbook_params, n_steps=0), n_paths=5)
        med.subscribe(recording_pricer)
        med.run()
        assert [p.tolist() for p in recording_pricer.paths] == [[60.0]] * 5

    def test_deterministic_path(self, textbook_params, recording_pricer):
        """Test a constant draw reproduces the Euler recursion"""
        process = ZeroDiffusionProcess(textbook_params)
        scheme = EulerScheme(process, 4)
        med = MonteCarloMediator(SimulationParts(process, scheme, ConstantSource(0.0)), n_paths=2)
        med.subscribe(recording_pricer)
        med.run()
        dt = 0.25 / 4
        expected = 60.0 * (1.0 + 0.08 * dt) ** np.arange(5)
        np.testing.assert_allclose(recording_pricer.paths[0], expected)

    def test_no_subscribers(self, mediator):
        """Test a run without pricers returns no results"""
        assert mediator.run() == []
        assert mediator.results == []

    def test_seeded_runs_reproducible(self, textbook_params):
        """Test equal seeds give equal prices"""
        prices = []
        for _ in range(2):
            med = MonteCarloMediator(default_parts(textbook_params, 10, seed=99), n_paths=500)
            pricer = make_pricer("european_call", 65.0, 1.0)
            med.subscribe(pricer)
            med.run()
            prices.append(pricer.price)
        assert prices[0] == prices[1]

    def test_progress_callback(self, textbook_params):
        """Test progress is reported up to completion"""
        calls = []
        med = MonteCarloMediator(default_parts(textbook_params, 5, seed=1), n_paths=1000, batch_size=10)
        med.run(progress_callback=lambda c, t: calls.append((c, t)))
        assert calls[-1] == (1000, 1000)
        assert 90 <= len(calls) <= 101
        assert [c for c, _ in calls] == sorted(c for c, _ in calls)

    def test_execution_time_recorded(self, mediator):
        """Test timing on the mediator and on results"""
        pricer = make_pricer("european_put", 65.0, 1.0)
        mediator.subscribe(pricer)
        (result,) = mediator.run()
        assert mediator.execution_time is not None and mediator.execution_time >= 0.0
        assert result.execution_time == mediator.execution_time
        assert mediator.results == [result]
        assert pricer.result is result

    def test_invalid_run_options(self, mediator):
        """Test run option validation"""
        with pytest.raises(ValueError):
            mediator.run(confidence=1.5)
        with pytest.raises(ValueError):
            mediator.run(n_workers=0)
        with pytest.raises(ValueError):
            mediator.run(ci_method="bootstrap")
        assert mediator.state is MediatorState.CONFIGURED


class TestPricing:
    """Test prices produced by full runs"""

    def test_european_call_converges(self, textbook_params):
        """Test the European call lies within 3 standard errors of Black-Scholes"""
        df = discount_factor(0.08, 0.25)
        med = MonteCarloMediator(default_parts(textbook_params, n_steps=50, seed=2024), n_paths=200_000)
        pricer = make_pricer("european_call", 65.0, df)
        med.subscribe(pricer)
        (res,) = med.run()
        exact = _black_scholes_call(60.0, 65.0, 0.08, 0.3, 0.25)
        assert exact == pytest.approx(2.13, abs=0.01)
        assert abs(res.price - exact) < 3.0 * df * res.se + 0.01

    def test_up_and_out_below_spot_is_worthless(self, textbook_params):
        """Test a barrier under the initial value knocks out every path"""
        med = MonteCarloMediator(default_parts(textbook_params, 20, seed=5), n_paths=2000)
        pricer = make_pricer("barrier_up_and_out_call", 50.0, 1.0, barrier=55.0)
        med.subscribe(pricer)
        (res,) = med.run()
        assert res.price == 0.0
        assert res.n_paths == 2000

    def test_zero_diffusion_asian_has_no_dispersion(self, textbook_params):
        """Test a noiseless geometric Asian price has zero standard deviation"""
        process = ZeroDiffusionProcess(textbook_params)
        parts = SimulationParts(process, EulerScheme(process, 50), default_parts(textbook_params, 50, seed=3).source)
        med = MonteCarloMediator(parts, n_paths=500)
        pricer = AsianPricer(CallPayoff(55.0), 1.0, GeometricAverage())
        med.subscribe(pricer)
        (res,) = med.run()
        assert res.std == pytest.approx(0.0, abs=1e-5)
        assert res.price > 0.0


class TestBackends:
    """Test parallel execution through the mediator"""

    def test_thread_backend(self, textbook_params):
        """Test thread runs see every path and are reproducible"""
        prices = []
        for _ in range(2):
            med = MonteCarloMediator(default_parts(textbook_params, 10, seed=7), n_paths=4000)
            pricer = make_pricer("european_call", 65.0, 1.0)
            med.subscribe(pricer)
            (res,) = med.run(backend="thread", n_workers=4)
            assert res.n_paths == 4000
            prices.append(res.price)
        assert prices[0] == prices[1]

    def test_thread_matches_sequential(self, textbook_params):
        """Test thread and sequential estimates agree statistically"""
        results = {}
        for backend in ("sequential", "thread"):
            med = MonteCarloMediator(default_parts(textbook_params, 10, seed=11), n_paths=40_000)
            med.subscribe(make_pricer("european_call", 65.0, 1.0))
            (results[backend],) = med.run(backend=backend, n_workers=2)
        seq, par = results["sequential"], results["thread"]
        assert abs(seq.price - par.price) < 4.0 * math.hypot(seq.se, par.se)

    def test_subscribe_during_parallel_run_rejected(self, textbook_params):
        """Test subscription changes are refused while workers run"""
        errors = []
        med = MonteCarloMediator(default_parts(textbook_params, 5, seed=1), n_paths=800)

        def _progress(completed, total):
            try:
                med.subscribe(RecordingPricer())
            except RuntimeError as exc:
                errors.append(exc)

        med.run(backend="thread", n_workers=2, progress_callback=_progress)
        assert errors
        assert med.subscribers == ()

    def test_process_backend(self, textbook_params):
        """Test process workers merge partial pricers"""
        med = MonteCarloMediator(default_parts(textbook_params, 5, seed=3), n_paths=1000)
        call = make_pricer("european_call", 65.0, 1.0)
        barrier = make_pricer("barrier_up_and_out_call", 50.0, 1.0, barrier=55.0)
        med.subscribe(call)
        med.subscribe(barrier)
        res_call, res_barrier = med.run(backend="process", n_workers=2)
        assert res_call.n_paths == res_barrier.n_paths == 1000
        assert res_barrier.price == 0.0

    def test_auto_small_job_is_sequential(self, mediator, caplog):
        """Test auto resolves to sequential below the threshold"""
        with caplog.at_level(logging.INFO, logger="mcpricer.mediator"):
            mediator.run(backend="auto", n_workers=4)
        assert "backend 'sequential'" in caplog.text

    def test_invalid_backend_falls_back(self, mediator, caplog):
        """Test an unknown backend logs a warning and runs"""
        mediator.subscribe(RecordingPricer(keep_paths=False))
        with caplog.at_level(logging.WARNING):
            (count,) = mediator.run(backend="gpu")
        assert count == 250
        assert "Defaulting to 'auto'" in caplog.text
