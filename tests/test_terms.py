"""
Test cases for model terms and level indexing.
"""

import pytest

import sys
import os
# Add parent directory to path to find pymme package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pymme.terms import ModelTerm, LevelIndex, BlockInfo


class TestLevelIndex:
    """Test cases for LevelIndex."""

    def test_first_seen_order(self):
        """Columns follow order of first appearance."""
        idx = LevelIndex()
        cols = [idx.lookup_or_insert(s) for s in ["b", "a", "b", "c", "a"]]

        assert cols == [0, 1, 0, 2, 1]
        assert idx.ordered_keys() == ["b", "a", "c"]
        assert len(idx) == 3

    def test_index_missing_key(self):
        """Looking up an unknown level raises KeyError."""
        idx = LevelIndex(["x", "y"])
        assert idx.index("y") == 1
        assert "x" in idx
        with pytest.raises(KeyError, match="not found"):
            idx.index("z")


class TestModelTerm:
    """Test cases for ModelTerm."""

    def test_single_factor(self):
        term = ModelTerm("sex", 1)

        assert term.term_string == "1:sex"
        assert term.factors == ["sex"]
        assert term.n_factors == 1
        assert not term.is_intercept
        assert term.start_column is None

    def test_interaction_trims_whitespace(self):
        term = ModelTerm(" A * B ", 2)

        assert term.term_string == "2:A * B"
        assert term.factors == ["A", "B"]
        assert term.n_factors == 2
        assert term.trait_index == 2

    def test_intercept(self):
        assert ModelTerm("intercept", 1).is_intercept

    def test_block_info_before_placement(self):
        """Block info requires a start column."""
        with pytest.raises(ValueError, match="has not been placed"):
            ModelTerm("sex", 1).block_info()

    def test_block_info(self):
        term = ModelTerm("sex", 1)
        term.start_column = 3
        term.n_levels = 2
        block = term.block_info(is_random=True)

        assert isinstance(block, BlockInfo)
        assert (block.name, block.start, block.stop) == ("1:sex", 3, 5)
        assert len(block) == 2
        assert block.is_random
