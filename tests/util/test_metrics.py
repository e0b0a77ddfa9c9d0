import pytest

from shiftropolis.util.metrics import CumulativeVar


class TestCumulativeVar:
    def test_initial_state(self) -> None:
        var = CumulativeVar(num_samples=10)
        assert var.sample_count == 0
        assert var.p50 == 0.0
        assert var.p95 == 0.0
        assert var.p99 == 0.0
        assert var.mean == 0.0
        assert var.get_percentiles_string() == "p50=0.00 p95=0.00 p99=0.00"

    def test_record_and_get_percentiles_less_than_capacity(self) -> None:
        var = CumulativeVar(num_samples=10)
        for i in range(5):
            var.record(i)
        assert var.sample_count == 5
        p50, p95, p99 = var.get_percentiles()
        assert p50 == pytest.approx(2.0)
        assert p95 == pytest.approx(3.8)
        assert p99 == pytest.approx(3.96)

    def test_record_and_get_percentiles_at_capacity(self) -> None:
        var = CumulativeVar(num_samples=10)
        for i in range(10):
            var.record(i)
        assert var.sample_count == 10
        p50, p95, p99 = var.get_percentiles()
        assert p50 == pytest.approx(4.5)
        assert p95 == pytest.approx(8.55)
        assert p99 == pytest.approx(8.91)

    def test_record_over_capacity_reservoir_sampling(self) -> None:
        var = CumulativeVar(num_samples=100)
        for i in range(200):
            var.record(i)
        assert var.sample_count == 200
        # Reservoir contents vary, but every sample lies in the recorded range
        p50, p95, p99 = var.get_percentiles()
        assert 0 < p50 < 200
        assert 0 < p95 < 200
        assert 0 < p99 < 200

    def test_mean_counts_every_sample(self) -> None:
        """The mean is exact even once the reservoir overflows."""
        var = CumulativeVar(num_samples=4)
        for i in range(1, 101):
            var.record(i)
        assert var.mean == pytest.approx(50.5)

    def test_get_percentiles_string(self) -> None:
        var = CumulativeVar(num_samples=10)
        for i in range(10):
            var.record(i)
        assert var.get_percentiles_string() == "p50=4.50 p95=8.55 p99=8.91"
