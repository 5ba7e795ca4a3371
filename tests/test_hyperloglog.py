"""Tests for HyperLogLog."""

import numpy as np
import pytest

from streamaqp.errors import ConfigurationError
from streamaqp.sketches import HyperLogLog, digest32


class TestHyperLogLogCreation:

    @pytest.mark.parametrize("b", [3, 17, 0])
    def test_rejects_b_out_of_range(self, b):
        with pytest.raises(ConfigurationError):
            HyperLogLog(b)

    def test_single_byte_registers(self):
        hll = HyperLogLog(10)
        assert hll.m == 1024
        assert hll.registers.dtype == np.uint8
        assert hll.memory_bytes == 1024
        assert not hll.registers.any()

    @pytest.mark.parametrize("b,alpha", [(4, 0.673), (5, 0.697), (6, 0.709)])
    def test_small_m_constants(self, b, alpha):
        hll = HyperLogLog(b)
        assert hll.alpha_mm() == pytest.approx(alpha * hll.m * hll.m)

    def test_large_m_constant(self):
        hll = HyperLogLog(10)
        assert hll.alpha_mm() == pytest.approx(0.7213 / (1 + 1.079 / 1024) * 1024 * 1024)


class TestHyperLogLogHashing:

    def test_digest_is_deterministic(self):
        assert digest32("Delhi") == digest32("Delhi")
        assert digest32("Delhi") != digest32("Mumbai")
        assert 0 <= digest32("Delhi") < 2**32

    def test_rank(self):
        hll = HyperLogLog(10)
        assert hll._rank(1 << 31) == 1
        assert hll._rank(1 << 29) == 3
        assert hll._rank(0) == 23


class TestHyperLogLogCount:

    def test_empty_is_zero(self):
        assert HyperLogLog(10).count() == 0

    def test_duplicates_count_once(self):
        hll = HyperLogLog(10)
        for _ in range(100):
            hll.add("same")

        assert hll.count() == 1

    def test_registers_never_decrease(self):
        hll = HyperLogLog(8)
        for i in range(500):
            hll.add(f"a{i}")
        before = hll.registers.copy()
        for i in range(500):
            hll.add(f"b{i}")

        assert (hll.registers >= before).all()

    def test_small_cardinality(self):
        hll = HyperLogLog(10)
        for i in range(100):
            hll.add(f"user-{i}")

        assert hll.count() == pytest.approx(100, rel=0.1)

    def test_medium_cardinality(self):
        hll = HyperLogLog(10)
        for i in range(1000):
            hll.add(f"user-{i}")

        assert hll.distinct_count() == pytest.approx(1000, rel=0.15)

    def test_large_cardinality(self):
        hll = HyperLogLog(12)
        for i in range(10_000):
            hll.add(f"user-{i}")

        assert hll.count() == pytest.approx(10_000, rel=0.08)

    def test_large_range_correction(self):
        hll = HyperLogLog(10)
        hll.registers[:] = 22
        raw = hll.alpha_mm() / (hll.m * 2.0 ** -22)

        assert raw < 2**32
        assert hll.count() > 2**32

    def test_saturated_registers(self):
        hll = HyperLogLog(10)
        hll.registers[:] = 23

        assert hll.count() == 2**32

    def test_reset(self):
        hll = HyperLogLog(6)
        hll.add("x")
        hll.reset()

        assert hll.count() == 0

    def test_standard_error(self):
        assert HyperLogLog(10).standard_error() == pytest.approx(1.04 / 32)
