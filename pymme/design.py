"""
Per-term data extraction and incidence matrix construction.
"""

import numpy as np
import pandas as pd
import warnings
from scipy import sparse

from .terms import ModelTerm, LevelIndex
from .utils import (MISSING_LEVEL, MISSING_FACTOR_LEVEL, check_columns, as_level_strings,
                    as_numeric, as_phenotype)


def get_data(term: ModelTerm, data: pd.DataFrame, mme) -> None:
    """
    Fill ``term.level_strings`` and ``term.values`` from the data.

    The first factor decides the starting level and value: a covariate
    contributes its name as level and its numbers as value, a factor its
    observed level and 1.0. Every further factor appends ``" * "`` plus
    its name (covariate) or level (factor), and multiplies the value by the
    covariate or by 1.0. Only the first factor is checked for ``intercept``.

    Missing factor values become ``"0"`` in pedigree terms, which skip them,
    and ``"NA"`` in every other term, where they form a level of their own
    distinct from a recorded ``0``.

    Parameters
    ----------
    term : ModelTerm
        Term to fill in
    data : pd.DataFrame
        Observation table
    mme : MME
        Model holding the covariate names
    """
    n_obs = len(data)
    if term.is_intercept:
        term.level_strings = np.full(n_obs, "intercept", dtype=object)
        term.values = np.ones(n_obs)
        return

    check_columns(data, term.factors)
    covariates = set(mme.covariates)
    missing = MISSING_LEVEL if term.term_string in mme.pedigree_terms else MISSING_FACTOR_LEVEL

    first = term.factors[0]
    if first in covariates:
        levels = np.full(n_obs, first, dtype=object)
        values = as_numeric(data[first], first)
    else:
        levels = as_level_strings(data[first], missing)
        values = np.ones(n_obs)

    for factor in term.factors[1:]:
        if factor in covariates:
            levels = levels + (" * " + factor)
            values = values * as_numeric(data[factor], factor)
        else:
            levels = levels + " * " + as_level_strings(data[factor], missing)

    term.level_strings = levels
    term.values = values


def _first_piece(level: str) -> str:
    return level.split("*")[0].strip()


def get_x(term: ModelTerm, mme, session) -> sparse.spmatrix:
    """
    Build the incidence matrix of one term and place it in the MME columns.

    Parameters
    ----------
    term : ModelTerm
        Term whose ``level_strings`` and ``values`` are filled
    mme : MME
        Model the term belongs to
    session : AssemblySession
        Open assembly session that hands out columns

    Returns
    -------
    scipy.sparse matrix
        Block of shape (n_obs * n_traits, n_levels)
    """
    n_obs = len(term.level_strings)
    rows = (term.trait_index - 1) * n_obs + np.arange(n_obs)
    values = np.asarray(term.values, dtype=float)

    if term.term_string in mme.pedigree_terms:
        # columns follow the whole pedigree, not only the observed individuals
        ped = mme.pedigree
        term.level_names = ped.ordered_ids()
        term.n_levels = ped.size
        keep = term.level_strings != MISSING_LEVEL
        rows = rows[keep]
        values = values[keep]
        cols = np.array([ped.column(_first_piece(s)) for s in term.level_strings[keep]], dtype=int)
    else:
        index = LevelIndex()
        cols = np.array([index.lookup_or_insert(s) for s in term.level_strings], dtype=int)
        term.level_names = index.ordered_keys()
        term.n_levels = len(index)

    if term.n_levels == 0:
        warnings.warn(f"Term '{term.term_string}' has no levels")

    shape = (n_obs * mme.n_traits, term.n_levels)
    term.incidence_block = sparse.coo_matrix((values, (rows, cols)), shape=shape).tocsc()
    session.place(term)
    return term.incidence_block


def build_response(mme, data: pd.DataFrame) -> np.ndarray:
    """
    Stack the trait columns into one response vector.

    Missing phenotypes are replaced by ``mme.control.missing_value``.
    Non-numeric entries are missing too, with a warning.

    Returns
    -------
    np.ndarray
        Vector of length n_obs * n_traits, traits in equation order
    """
    check_columns(data, mme.lhs_traits)
    blocks = []
    for trait in mme.lhs_traits:
        y = as_phenotype(data[trait], trait)
        if len(y) and y.isnull().all():
            warnings.warn(f"Trait '{trait}' contains only missing values")
        blocks.append(y.fillna(mme.control.missing_value).to_numpy(dtype=float))
    return np.concatenate(blocks) if blocks else np.zeros(0)
