"""
Residual precision and random-effect contributions to the normal equations.

For multi-trait models the residual precision ``Ri`` enters the normal
equations as ``X' Ri X``. With missing phenotypes each observation uses the
inverse of R restricted to the traits it actually has, so ``Ri`` is built
pattern by pattern.

Random effects are added to the left-hand side after ``X' Ri X`` (or ``X'X``)
has been formed:

- additive genetic terms get ``G^{-1} (x) A^{-1}`` (``add_a``);
- i.i.d. terms in single-trait models get ``I * sigma_e^2 / sigma_u^2``
  (``add_lambdas``).
"""

import numpy as np
import pandas as pd
from scipy import sparse
from abc import ABC, abstractmethod
from typing import Dict, Tuple

from .terms import BlockInfo
from .utils import check_columns, as_covariance_matrix, observed_phenotypes


class ResidualStructure(ABC):
    """Base class for residual precision builders used in multi-trait models."""

    @abstractmethod
    def precision(self, mme, data: pd.DataFrame) -> sparse.spmatrix:
        """Residual precision of size ``n_obs * n_traits`` square."""
        pass


class MissingPatternResidual(ResidualStructure):
    """
    Residual precision that accounts for missing phenotypes.

    Parameters
    ----------
    R : np.ndarray
        Residual covariance among traits (n_traits x n_traits)
    """

    def __init__(self, R: np.ndarray):
        self.R = np.atleast_2d(np.asarray(R, dtype=float))
        self._cache: Dict[Tuple[bool, ...], np.ndarray] = {}

    def pattern_inverse(self, observed: Tuple[bool, ...]) -> np.ndarray:
        """
        Inverse of R restricted to the observed traits, zero elsewhere.

        Parameters
        ----------
        observed : tuple of bool
            Which traits are observed

        Returns
        -------
        np.ndarray
            Matrix of shape (n_traits, n_traits)
        """
        key = tuple(bool(o) for o in observed)
        Ri = self._cache.get(key)
        if Ri is None:
            sel = np.flatnonzero(key)
            Ri = np.zeros_like(self.R)
            if sel.size:
                Ri[np.ix_(sel, sel)] = np.linalg.inv(self.R[np.ix_(sel, sel)])
            self._cache[key] = Ri
        return Ri

    def precision(self, mme, data: pd.DataFrame) -> sparse.spmatrix:
        check_columns(data, mme.lhs_traits)
        observed = observed_phenotypes(data, mme.lhs_traits)
        n_obs, n_traits = observed.shape
        if n_traits != self.R.shape[0]:
            raise ValueError(f"R is {self.R.shape[0]}x{self.R.shape[0]} but the model has {n_traits} traits")

        patterns, inverse = np.unique(observed, axis=0, return_inverse=True)
        inverse = np.asarray(inverse).ravel()
        rows, cols, vals = [], [], []
        for k, pattern in enumerate(patterns):
            obs = np.flatnonzero(inverse == k)
            Ri = self.pattern_inverse(tuple(pattern))
            for ti in range(n_traits):
                for tj in range(n_traits):
                    if Ri[ti, tj] == 0.0:
                        continue
                    rows.append(ti * n_obs + obs)
                    cols.append(tj * n_obs + obs)
                    vals.append(np.full(obs.size, Ri[ti, tj]))

        size = n_obs * n_traits
        if not rows:
            return sparse.csc_matrix((size, size))
        return sparse.coo_matrix(
            (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
            shape=(size, size)
        ).tocsc()


def mk_ri(mme, data: pd.DataFrame) -> sparse.spmatrix:
    """Residual precision of a multi-trait MME from its residual structure."""
    return mme.residual_structure.precision(mme, data)


def _embed(matrix: sparse.spmatrix, rows: BlockInfo, cols: BlockInfo,
           shape: Tuple[int, int]) -> sparse.coo_matrix:
    """Place ``matrix`` at the intersection of two term blocks inside a zero matrix of ``shape``."""
    matrix = sparse.coo_matrix(matrix)
    return sparse.coo_matrix(
        (matrix.data, (matrix.row + rows.start, matrix.col + cols.start)), shape=shape
    )


def add_a(mme) -> None:
    """
    Add the additive genetic contribution ``G^{-1} (x) A^{-1}`` to the LHS.

    Block (i, j) of the pedigree terms, in ``mme.pedigree_terms`` order,
    receives ``Ginv[i, j] * s * Ai``, where ``s`` is the residual variance
    for a single trait and 1.0 otherwise.
    """
    if mme.lhs is None or mme.Ai is None:
        raise ValueError("Mixed model equations and Ai must be built before adding A")
    if mme.genetic_covariance is None:
        raise ValueError("Genetic covariance G is not set; use set_random() with a pedigree")

    blocks = [mme.term_lookup[t].block_info(is_random=True) for t in mme.pedigree_terms]
    G = as_covariance_matrix(mme.genetic_covariance, len(blocks), name="G")
    Ginv = np.linalg.inv(G)
    scale = mme.residual_covariance[0, 0] if mme.n_traits == 1 else 1.0

    for block in blocks:
        if len(block) != mme.Ai.shape[0]:
            raise ValueError(f"Term '{block.name}' has {len(block)} columns "
                             f"but Ai has {mme.Ai.shape[0]}")

    added = sparse.csc_matrix(mme.lhs.shape)
    for i, bi in enumerate(blocks):
        for j, bj in enumerate(blocks):
            added = added + _embed(mme.Ai * (Ginv[i, j] * scale), bi, bj, mme.lhs.shape)
    mme.lhs = (mme.lhs + added).asformat(mme.control.sparse_format)


def add_lambdas(mme) -> None:
    """
    Add variance ratios ``sigma_e^2 / sigma_u^2`` for i.i.d. random terms.

    Only defined for single-trait models.
    """
    if mme.lhs is None:
        raise ValueError("Mixed model equations must be built before adding lambdas")
    if mme.n_traits != 1:
        raise ValueError("add_lambdas is only defined for single-trait models")

    sigma_e = mme.residual_covariance[0, 0]
    added = sparse.csc_matrix(mme.lhs.shape)
    for term_string, variance in mme.random_variances.items():
        block = mme.term_lookup[term_string].block_info(is_random=True)
        ratio = sigma_e / variance
        added = added + _embed(sparse.identity(len(block)) * ratio, block, block, mme.lhs.shape)
    mme.lhs = (mme.lhs + added).asformat(mme.control.sparse_format)
