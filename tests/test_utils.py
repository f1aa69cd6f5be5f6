import pytest

from mcpricer.utils import autocrit, t_crit, z_crit


class TestCriticalValues:
    """Test z and t critical values"""

    def test_z_crit(self):
        """Test the familiar 95% value"""
        assert z_crit(0.95) == pytest.approx(1.959964, abs=1e-6)

    def test_t_crit_exceeds_z(self):
        """Test Student-t is wider for small samples"""
        assert t_crit(0.95, 5) > z_crit(0.95)

    @pytest.mark.parametrize("conf", [0.0, 1.0, -0.5, 1.5])
    def test_invalid_confidence(self, conf):
        """Test confidence outside (0, 1) is rejected"""
        with pytest.raises(ValueError):
            z_crit(conf)
        with pytest.raises(ValueError):
            t_crit(conf, 10)

    def test_invalid_df(self):
        """Test degrees of freedom must be positive"""
        with pytest.raises(ValueError):
            t_crit(0.95, 0)


class TestAutocrit:
    """Test critical value selection"""

    def test_auto_small_sample_uses_t(self):
        """Test auto picks t below 30 samples"""
        crit, kind = autocrit(0.95, 10)
        assert kind == "t"
        assert crit == pytest.approx(t_crit(0.95, 9))

    def test_auto_large_sample_uses_z(self):
        """Test auto picks z for large samples"""
        assert autocrit(0.95, 1000) == (pytest.approx(z_crit(0.95)), "z")

    def test_forced_methods(self):
        """Test explicit z and t"""
        assert autocrit(0.95, 10, "z")[1] == "z"
        assert autocrit(0.95, 1000, "t")[1] == "t"

    def test_single_sample_falls_back_to_z(self):
        """Test t needs at least two samples"""
        assert autocrit(0.95, 1, "t")[1] == "z"

    def test_unknown_method(self):
        """Test unknown methods are rejected"""
        with pytest.raises(ValueError):
            autocrit(0.95, 100, "bootstrap")
