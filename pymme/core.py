"""
Mixed model equations container and assembler.
"""

import numpy as np
import pandas as pd
from scipy import sparse
from typing import Optional, List, Dict

from .control import MMEControl
from .terms import ModelTerm, BlockInfo
from .design import get_data, get_x, build_response
from .pedigree import RelationshipProvider
from .variance import MissingPatternResidual, mk_ri, add_a, add_lambdas

_REBUILD_MESSAGE = "Please build your model again using the function build_model()."


class MME:
    """
    Mixed model equations for one model.

    Created by :func:`pymme.build_model`; assembled once by :func:`get_mme`.

    Parameters
    ----------
    n_traits : int
        Number of trait equations
    model_equations : list of str
        Raw text of each equation
    model_terms : list of ModelTerm
        All terms of all equations, in declaration order
    term_lookup : dict
        Term string to term
    lhs_traits : list of str
        Trait names in equation order
    R : np.ndarray
        Residual covariance (n_traits x n_traits)
    df : float, default=4.0
        Degrees of freedom of the residual variance
    control : MMEControl, optional
        Assembly control parameters

    Attributes
    ----------
    covariates : list of str
        Variables entered by value instead of level
    pedigree_terms : list of str
        Term strings weighted by the relationship matrix
    pedigree : RelationshipProvider or None
        Pedigree used by ``pedigree_terms``
    genetic_covariance : np.ndarray or None
        Covariance among ``pedigree_terms``
    random_variances : dict
        Variance of each i.i.d. random term
    residual_structure : ResidualStructure
        Builds the residual precision of multi-trait models
    next_column_position : int
        Next free column; 0 until the MME is assembled
    session : AssemblySession or None
        The assembly pass that consumed this MME
    X : scipy.sparse matrix
        Design matrix (n_obs * n_traits rows)
    y : np.ndarray
        Stacked response vector
    lhs, rhs : scipy.sparse matrix, np.ndarray
        Left- and right-hand side of the mixed model equations
    Ai : scipy.sparse matrix
        Inverse numerator relationship matrix
    """

    def __init__(
        self,
        n_traits: int,
        model_equations: List[str],
        model_terms: List[ModelTerm],
        term_lookup: Dict[str, ModelTerm],
        lhs_traits: List[str],
        R: np.ndarray,
        df: float = 4.0,
        control: Optional[MMEControl] = None
    ):
        self.n_traits = n_traits
        self.model_equations = model_equations
        self.model_terms = model_terms
        self.term_lookup = term_lookup
        self.lhs_traits = lhs_traits
        self.residual_covariance = R
        self.residual_df = float(df)
        self.control = control or MMEControl()

        self.covariates: List[str] = []
        self.pedigree_terms: List[str] = []
        self.pedigree: Optional[RelationshipProvider] = None
        self.genetic_covariance: Optional[np.ndarray] = None
        self.random_variances: Dict[str, float] = {}
        self.residual_structure = MissingPatternResidual(R)

        self.next_column_position = 0
        self.session = None
        self.X = None
        self.y = None
        self.lhs = None
        self.rhs = None
        self.Ai = None

    @property
    def is_assembled(self) -> bool:
        return self.session is not None

    @property
    def n_columns(self) -> int:
        return sum(term.n_levels for term in self.model_terms)

    def blocks(self) -> List[BlockInfo]:
        """Column range of every term, in column order."""
        random_terms = set(self.pedigree_terms) | set(self.random_variances)
        return [term.block_info(term.term_string in random_terms) for term in self.model_terms]

    def __repr__(self) -> str:
        state = "assembled" if self.is_assembled else "fresh"
        return (f"MME(n_traits={self.n_traits}, n_terms={len(self.model_terms)}, "
                f"traits={self.lhs_traits}, {state})")


class AssemblySession:
    """
    One assembly pass over an MME.

    Hands out contiguous columns to terms in the order they are placed. An
    MME can be assembled once: opening a session on an MME whose column
    counter has moved raises ``RuntimeError``. The counter is mirrored on
    the MME as it advances, so a failed pass also leaves the MME unusable.
    """

    def __init__(self, mme: MME):
        if mme.session is not None or mme.next_column_position != 0:
            raise RuntimeError(_REBUILD_MESSAGE)
        mme.session = self
        self.mme = mme
        self.next_column = 0
        self.closed = False

    def place(self, term: ModelTerm) -> int:
        """Give ``term`` its start column and advance by its number of levels."""
        if self.closed:
            raise RuntimeError("Assembly session is closed")
        term.start_column = self.next_column
        self.next_column += term.n_levels
        self.mme.next_column_position = self.next_column
        if self.mme.control.monitoring:
            print(f"  {term.term_string:<20s} columns {term.start_column}:{term.stop_column}")
        return term.start_column

    def close(self) -> None:
        self.closed = True


def get_mme(mme: MME, data: pd.DataFrame) -> MME:
    """
    Construct the mixed model equations.

    Builds the incidence matrix ``X`` term by term, the stacked response
    ``y``, and the normal equations ``lhs``/``rhs`` (``X'Ri X``/``X'Ri y``
    for multi-trait models, ``X'X``/``X'y`` otherwise). A pedigree adds
    ``G^{-1} (x) A^{-1}`` and single-trait models add the variance ratios of
    i.i.d. random terms.

    Parameters
    ----------
    mme : MME
        Model returned by ``build_model``
    data : pd.DataFrame
        Observation table with trait and factor columns

    Returns
    -------
    MME
        The same object, with ``X``, ``y``, ``lhs``, ``rhs`` and ``Ai`` set

    Raises
    ------
    RuntimeError
        If the MME was already assembled
    """
    session = AssemblySession(mme)
    fmt = mme.control.sparse_format
    if mme.control.monitoring:
        print(f"Building MME for {mme.n_traits} trait(s), {len(data)} observations:")

    for term in mme.model_terms:
        get_data(term, data, mme)
        get_x(term, mme, session)

    blocks = [term.incidence_block for term in mme.model_terms]
    if blocks:
        X = sparse.hstack(blocks, format="csc")
    else:
        X = sparse.csc_matrix((len(data) * mme.n_traits, 0))
    y = build_response(mme, data)

    mme.X = X.asformat(fmt)
    mme.y = y
    if mme.n_traits > 1:
        Ri = mk_ri(mme, data)
        XtRi = X.T @ Ri
        mme.lhs = (XtRi @ X).asformat(fmt)
        mme.rhs = np.asarray(XtRi @ y).ravel()
    else:
        mme.lhs = (X.T @ X).asformat(fmt)
        mme.rhs = np.asarray(X.T @ y).ravel()

    if mme.pedigree is not None:
        ii, jj, vv = mme.pedigree.hai()
        n = mme.pedigree.size
        HAi = sparse.coo_matrix((vv, (ii, jj)), shape=(n, n)).tocsc()
        mme.Ai = (HAi.T @ HAi).tocsc()
        add_a(mme)

    if mme.n_traits == 1:
        add_lambdas(mme)

    session.close()
    if mme.control.monitoring:
        print(f"Mixed model equations: {mme.lhs.shape[0]} equations, {mme.lhs.nnz} non-zeros")
    return mme


def effect_names(mme: MME) -> List[str]:
    """
    One label ``"<term_string>:<level>"`` per column of the assembled MME.

    Examples
    --------
    >>> effect_names(mme)[:2]
    ['1:intercept:intercept', '1:age:age']
    """
    if mme.X is None:
        raise ValueError("MME must be assembled before extracting effect names")
    return [f"{term.term_string}:{level}" for term in mme.model_terms for level in term.level_names]
