"""Tests for the BlockSampler."""

import statistics

import pytest

from streamaqp.errors import ConfigurationError, NotReadyError, UnknownColumnError
from streamaqp.sampling import BlockSampler, ReservoirSampler


class TestBlockCreation:

    @pytest.mark.parametrize("block_size", [0, -5, 2.5, True])
    def test_rejects_bad_block_size(self, block_size):
        with pytest.raises(ConfigurationError, match="block_size"):
            BlockSampler(0.1, block_size)

    def test_rejects_bad_fraction(self):
        with pytest.raises(ConfigurationError):
            BlockSampler(1.0, 10)


class TestBlockIngest:

    def test_trailing_rows_stay_buffered(self, header_line, ordered_lines):
        bs = BlockSampler(0.1, block_size=100, seed=1)
        bs.ingest(header_line)
        for line in ordered_lines(250):
            bs.ingest(line)

        assert bs.n == 250
        assert bs.blocks_seen == 2
        assert len(bs.partial) == 50
        assert bs.reservoir_blocks == 1

    def test_actions(self, header_line, ordered_lines):
        bs = BlockSampler(0.5, block_size=3, seed=4)
        assert bs.ingest(header_line)["action"] == "set-header"
        actions = [bs.ingest(line)["action"] for line in ordered_lines(12)]

        assert actions[:2] == ["buffer_row", "buffer_row"]
        assert actions[2] == "push_block"
        assert set(actions[3::3]) == {"buffer_row"}
        assert set(actions[5::3]) <= {"push_block", "replace_block", "skip_block"}

    def test_blocks_keep_their_size(self, header_line, ordered_lines):
        bs = BlockSampler(0.2, block_size=7, seed=2)
        bs.ingest(header_line)
        for line in ordered_lines(300):
            bs.ingest(line)
            assert bs.reservoir_blocks <= bs.target_blocks()

        assert all(len(block) == 7 for block in bs.res)

    def test_blocks_are_consecutive_rows(self, header_line, ordered_lines):
        bs = BlockSampler(0.3, block_size=5, seed=9)
        bs.ingest(header_line)
        for line in ordered_lines(100):
            bs.ingest(line)

        for block in bs.res:
            ids = [int(r[0]) for r in block]
            assert ids == list(range(ids[0], ids[0] + 5))
            assert (ids[0] - 1) % 5 == 0


class TestBlockBuild:

    def test_build_matches_online_counts(self, tmp_path, ordered_lines):
        path = tmp_path / "rows.csv"
        path.write_text("id,name,age,city,salary\n" + "\n".join(ordered_lines(250)) + "\n")
        bs = BlockSampler(0.1, block_size=100, seed=3)
        info = bs.build(path)

        assert info["N"] == 250
        assert info["blocks_seen"] == 2
        assert info["K"] == 1
        assert bs.reservoir_blocks == 1
        assert len(bs.partial) == 50

    def test_build_with_fewer_rows_than_a_block(self, tmp_path, ordered_lines):
        path = tmp_path / "rows.csv"
        path.write_text("id,name,age,city,salary\n" + "\n".join(ordered_lines(40)) + "\n")
        bs = BlockSampler(0.1, block_size=100)
        bs.build(path)

        assert bs.n == 40
        assert bs.blocks_seen == 0
        assert len(bs.partial) == 40
        with pytest.raises(NotReadyError):
            bs.approx_sum("salary")

    def test_rebuild_restores_file_state(self, salary_csv):
        bs = BlockSampler(0.1, block_size=100, seed=8)
        bs.build(salary_csv)
        for i in range(130):
            bs.ingest(f"{5000 + i},X,30,Delhi,1")
        assert bs.blocks_seen == 11

        bs.rebuild()
        assert bs.n == 1000
        assert bs.blocks_seen == 10
        assert bs.partial == []


class TestBlockQueries:

    @pytest.fixture
    def small(self):
        bs = BlockSampler(0.99, block_size=2, seed=0)
        for line in ["city,salary", "Delhi,100", "Mumbai,300", "Delhi,abc", "Pune,500", "Delhi,900"]:
            bs.ingest(line)
        return bs

    def test_trailing_row_counts_towards_n_only(self, small):
        assert small.n == 5
        assert small.reservoir_blocks == 2
        assert small.approx_avg("salary") == pytest.approx(300.0)
        assert small.approx_sum("salary") == pytest.approx(1500.0)

    def test_group_by_scales_by_rows(self, small):
        groups = small.approx_group_by("city", "salary")

        assert groups == pytest.approx({"Delhi": 500.0 / 3, "Mumbai": 500.0, "Pune": 2500.0 / 3})

    def test_unknown_column(self, small):
        with pytest.raises(UnknownColumnError):
            small.approx_avg("bonus")

    def test_not_ready_before_first_block(self):
        bs = BlockSampler(0.5, block_size=10)
        bs.ingest("city,salary")
        bs.ingest("Delhi,1")
        with pytest.raises(NotReadyError):
            bs.approx_group_by("city", "salary")


class TestBlockVariance:

    def test_block_estimates_vary_more_than_row_estimates(self, tmp_path, ordered_lines):
        """Rows inside a block are correlated on ordered data."""
        path = tmp_path / "ordered.csv"
        path.write_text("id,name,age,city,salary\n" + "\n".join(ordered_lines(2000)) + "\n")

        row_avgs, block_avgs = [], []
        for seed in range(30):
            rs = ReservoirSampler(0.1, seed=seed)
            rs.build(path)
            row_avgs.append(rs.approx_avg("salary"))

            bs = BlockSampler(0.1, block_size=50, seed=seed)
            bs.build(path)
            assert sum(len(b) for b in bs.res) == rs.sample_size
            block_avgs.append(bs.approx_avg("salary"))

        assert statistics.pvariance(block_avgs) > 5 * statistics.pvariance(row_avgs)
