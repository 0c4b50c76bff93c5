"""
Test cases for term data extraction and incidence matrices.
"""

import pytest
import numpy as np
import pandas as pd

import sys
import os
# Add parent directory to path to find pymme package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pymme import build_model, set_covariate, set_random, Pedigree
from pymme.core import AssemblySession
from pymme.design import get_data, get_x, build_response
from pymme.utils import as_level_strings


@pytest.fixture
def data():
    return pd.DataFrame({
        'A': ['a1', 'a2', 'a1', 'a3'],
        'B': ['b1', 'b1', 'b2', 'b2'],
        'age': [2.0, 3.0, 4.0, 5.0],
        'w': [1.0, 0.5, 2.0, 1.0],
        'y1': [1.0, 2.0, np.nan, 4.0],
        'y2': [5.0, np.nan, 7.0, 8.0],
    })


@pytest.fixture
def pedigree():
    # five individuals, data below only use two of them
    return Pedigree.from_dataframe(pd.DataFrame({
        'ID': ['p1', 'p2', 'p3', 'p4', 'p5'],
        'Sire': ['0', '0', 'p1', 'p1', 'p3'],
        'Dam': ['0', '0', 'p2', 'p2', 'p4'],
    }))


class TestGetData:
    """Test cases for get_data."""

    def test_intercept(self, data):
        mme = build_model("y1 = intercept", 1.0)
        term = mme.model_terms[0]
        get_data(term, data, mme)

        assert list(term.level_strings) == ["intercept"] * 4
        np.testing.assert_array_equal(term.values, np.ones(4))

    def test_factor(self, data):
        mme = build_model("y1 = A", 1.0)
        term = mme.model_terms[0]
        get_data(term, data, mme)

        assert list(term.level_strings) == ["a1", "a2", "a1", "a3"]
        np.testing.assert_array_equal(term.values, np.ones(4))

    def test_covariate(self, data):
        mme = build_model("y1 = age", 1.0)
        set_covariate(mme, "age")
        term = mme.model_terms[0]
        get_data(term, data, mme)

        assert list(term.level_strings) == ["age"] * 4
        np.testing.assert_array_equal(term.values, [2.0, 3.0, 4.0, 5.0])

    def test_factor_interaction(self, data):
        """Two factors give '<levelA> * <levelB>' with value 1.0."""
        mme = build_model("y1 = A*B", 1.0)
        term = mme.model_terms[0]
        get_data(term, data, mme)

        assert list(term.level_strings) == ["a1 * b1", "a2 * b1", "a1 * b2", "a3 * b2"]
        np.testing.assert_array_equal(term.values, np.ones(4))

    def test_factor_by_covariate(self, data):
        mme = build_model("y1 = A*age", 1.0)
        set_covariate(mme, "age")
        term = mme.model_terms[0]
        get_data(term, data, mme)

        assert list(term.level_strings) == ["a1 * age", "a2 * age", "a1 * age", "a3 * age"]
        np.testing.assert_array_equal(term.values, [2.0, 3.0, 4.0, 5.0])

    def test_covariate_by_factor(self, data):
        mme = build_model("y1 = age*A", 1.0)
        set_covariate(mme, "age")
        term = mme.model_terms[0]
        get_data(term, data, mme)

        assert list(term.level_strings) == ["age * a1", "age * a2", "age * a1", "age * a3"]
        np.testing.assert_array_equal(term.values, [2.0, 3.0, 4.0, 5.0])

    def test_covariate_by_covariate(self, data):
        mme = build_model("y1 = age*w", 1.0)
        set_covariate(mme, "age w")
        term = mme.model_terms[0]
        get_data(term, data, mme)

        assert list(term.level_strings) == ["age * w"] * 4
        np.testing.assert_array_equal(term.values, [2.0, 1.5, 8.0, 5.0])

    def test_missing_column(self, data):
        mme = build_model("y1 = herd", 1.0)
        with pytest.raises(KeyError, match="Missing columns in data"):
            get_data(mme.model_terms[0], data, mme)

    def test_intercept_only_recognised_first(self, data):
        """Characterization: 'intercept' is only special as the first factor."""
        mme = build_model("y1 = A*intercept", 1.0)
        with pytest.raises(KeyError, match="intercept"):
            get_data(mme.model_terms[0], data, mme)

    def test_level_strings_of_float_ids(self):
        """Whole floats print without '.0'; missing values become '0'."""
        levels = as_level_strings(pd.Series([1.0, 2.0, np.nan, 2.5]))
        assert list(levels) == ["1", "2", "0", "2.5"]


class TestGetX:
    """Test cases for get_x."""

    def _build(self, mme, data):
        session = AssemblySession(mme)
        for term in mme.model_terms:
            get_data(term, data, mme)
            get_x(term, mme, session)
        return session

    def test_factor_block(self, data):
        mme = build_model("y1 = A", 1.0)
        self._build(mme, data)
        term = mme.model_terms[0]

        assert term.level_names == ["a1", "a2", "a3"]
        assert term.n_levels == 3
        assert term.incidence_block.shape == (4, 3)
        np.testing.assert_array_equal(
            term.incidence_block.toarray(),
            [[1, 0, 0], [0, 1, 0], [1, 0, 0], [0, 0, 1]]
        )

    def test_missing_factor_level_apart_from_zero(self):
        """A missing herd does not share the column of herd 0."""
        data = pd.DataFrame({'herd': [0, np.nan, 0, 1], 'y1': [1.0, 2.0, 3.0, 4.0]})
        mme = build_model("y1 = herd", 1.0)
        self._build(mme, data)
        term = mme.model_terms[0]

        assert term.level_names == ["0", "NA", "1"]
        np.testing.assert_array_equal(
            term.incidence_block.toarray(),
            [[1, 0, 0], [0, 1, 0], [1, 0, 0], [0, 0, 1]]
        )

    def test_contiguous_columns(self, data):
        """Each term starts where the previous one stopped."""
        mme = build_model("y1 = intercept + A + B + A*B", 1.0)
        session = self._build(mme, data)
        terms = mme.model_terms

        assert terms[0].start_column == 0
        for prev, term in zip(terms[:-1], terms[1:]):
            assert term.start_column == prev.start_column + prev.n_levels
        assert session.next_column == sum(t.n_levels for t in terms) == 1 + 3 + 2 + 4
        assert mme.next_column_position == 10

    def test_multi_trait_rows(self, data):
        """Rows of trait k start at (k - 1) * n_obs."""
        mme = build_model("y1 = intercept; y2 = intercept + B", np.eye(2))
        self._build(mme, data)
        t1, t2, t3 = mme.model_terms

        assert t1.incidence_block.shape == (8, 1)
        np.testing.assert_array_equal(t1.incidence_block.toarray().ravel(), [1] * 4 + [0] * 4)
        np.testing.assert_array_equal(t2.incidence_block.toarray().ravel(), [0] * 4 + [1] * 4)
        np.testing.assert_array_equal(
            t3.incidence_block.toarray(),
            [[0, 0]] * 4 + [[1, 0], [1, 0], [0, 1], [0, 1]]
        )

    def test_pedigree_term_spans_whole_pedigree(self, pedigree):
        """Data using 2 of 5 individuals still give 5 columns."""
        data = pd.DataFrame({'ID': ['p2', 'p4'], 'y': [1.0, 2.0]})
        mme = build_model("y = ID", 1.0)
        set_random(mme, "ID", 1.0, pedigree=pedigree)
        self._build(mme, data)
        term = mme.model_terms[0]

        assert term.n_levels == 5
        assert term.level_names == ["p1", "p2", "p3", "p4", "p5"]
        np.testing.assert_array_equal(
            term.incidence_block.toarray(),
            [[0, 1, 0, 0, 0], [0, 0, 0, 1, 0]]
        )

    def test_pedigree_term_skips_unknown_parent(self, pedigree):
        """Rows whose level is '0' (unknown dam) contribute nothing."""
        data = pd.DataFrame({'dam': ['p2', '0', 'p4'], 'y': [1.0, 2.0, 3.0]})
        mme = build_model("y = dam", 1.0)
        set_random(mme, "dam", 1.0, pedigree=pedigree)
        self._build(mme, data)
        X = mme.model_terms[0].incidence_block.toarray()

        assert X.shape == (3, 5)
        np.testing.assert_array_equal(X.sum(axis=1), [1, 0, 1])

    def test_pedigree_by_covariate(self, pedigree):
        """The individual is taken from the first factor of the level."""
        data = pd.DataFrame({'ID': ['p2', 'p5'], 'age': [2.0, 3.0], 'y': [1.0, 2.0]})
        mme = build_model("y = ID*age", 1.0)
        set_covariate(mme, "age")
        set_random(mme, "ID*age", 1.0, pedigree=pedigree)
        self._build(mme, data)
        X = mme.model_terms[0].incidence_block.toarray()

        assert X[0, 1] == 2.0
        assert X[1, 4] == 3.0

    def test_covariate_first_in_pedigree_term(self, pedigree):
        """Characterization: 'age*ID' looks up 'age' in the pedigree and fails."""
        data = pd.DataFrame({'ID': ['p2', 'p5'], 'age': [2.0, 3.0], 'y': [1.0, 2.0]})
        mme = build_model("y = age*ID", 1.0)
        set_covariate(mme, "age")
        set_random(mme, "age*ID", 1.0, pedigree=pedigree)
        with pytest.raises(KeyError, match="not found in pedigree"):
            self._build(mme, data)

    def test_unknown_individual(self, pedigree):
        data = pd.DataFrame({'ID': ['p2', 'x9'], 'y': [1.0, 2.0]})
        mme = build_model("y = ID", 1.0)
        set_random(mme, "ID", 1.0, pedigree=pedigree)
        with pytest.raises(KeyError, match="x9"):
            self._build(mme, data)


class TestBuildResponse:
    """Test cases for build_response."""

    def test_stacked_with_missing_as_zero(self, data):
        mme = build_model("y1 = intercept; y2 = intercept", np.eye(2))
        y = build_response(mme, data)

        assert len(y) == 4 * 2
        np.testing.assert_array_equal(y, [1.0, 2.0, 0.0, 4.0, 5.0, 0.0, 7.0, 8.0])

    def test_all_missing_trait_warns(self, data):
        data['y3'] = np.nan
        mme = build_model("y3 = intercept", 1.0)
        with pytest.warns(UserWarning, match="only missing values"):
            y = build_response(mme, data)
        np.testing.assert_array_equal(y, np.zeros(4))

    def test_non_numeric_trait_warns(self):
        data = pd.DataFrame({'y1': ['4', '.', 6.0, np.nan]})
        mme = build_model("y1 = intercept", 1.0)
        with pytest.warns(UserWarning, match="1 non-numeric"):
            y = build_response(mme, data)
        np.testing.assert_array_equal(y, [4.0, 0.0, 6.0, 0.0])

    def test_missing_trait_column(self, data):
        mme = build_model("BW = intercept", 1.0)
        with pytest.raises(KeyError, match="BW"):
            build_response(mme, data)
