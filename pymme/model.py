"""
Model specification: equations, covariates and random effects.
"""

import re
import numpy as np
from typing import Optional, List, Dict, Union

from .control import MMEControl
from .core import MME, _REBUILD_MESSAGE
from .pedigree import RelationshipProvider
from .terms import ModelTerm
from .utils import as_covariance_matrix


def build_model(model_equations: str, R: Union[float, np.ndarray], df: float = 4.0,
                control: Optional[MMEControl] = None) -> MME:
    """
    Build a model from model equations and residual (co)variance.

    All variables in the equations are fixed factors by default. Use
    :func:`set_covariate` and :func:`set_random` to change that before
    calling :func:`pymme.get_mme`.

    Parameters
    ----------
    model_equations : str
        One ``trait = term + term + ...`` equation per trait, separated by
        ``;`` or newlines. Interactions are written ``A*B``.
    R : float or np.ndarray
        Residual variance (single trait) or covariance matrix (multi-trait)
    df : float, default=4.0
        Degrees of freedom of the residual variance
    control : MMEControl, optional
        Assembly control parameters

    Returns
    -------
    MME
        Unassembled mixed model equations

    Notes
    -----
    A term written identically in two equations becomes two terms (their
    term strings differ by trait index). If the same term string does occur
    twice, ``term_lookup`` keeps the last one.

    Examples
    --------
    >>> mme = build_model("BW = intercept + age + sex", 6.72)
    >>> mme = build_model('''BW = intercept + age + sex
    ...                      CW = intercept + litter''', [[6.72, 24.84], [24.84, 708.41]])
    """
    if not isinstance(model_equations, str) or model_equations.strip() == "":
        raise ValueError("Model equations are wrong. "
                         "To find an example, see the docstring of build_model().")

    equations = [eq.strip() for eq in re.split(r"[;\n]", model_equations) if eq.strip()]
    lhs_traits: List[str] = []
    model_terms: List[ModelTerm] = []
    for m, equation in enumerate(equations, start=1):
        if "=" not in equation:
            raise ValueError(f"Equation '{equation}' must contain '=' between trait and terms")
        lhs, rhs = equation.split("=", 1)
        trait = lhs.strip()
        if not trait:
            raise ValueError(f"Trait name is empty in equation '{equation}'")
        lhs_traits.append(trait)
        for token in rhs.strip().split("+"):
            if not token.strip():
                raise ValueError(f"Empty term in equation '{equation}'")
            model_terms.append(ModelTerm(token.strip(), m))

    term_lookup: Dict[str, ModelTerm] = {}
    for term in model_terms:
        term_lookup[term.term_string] = term

    n_traits = len(equations)
    R = as_covariance_matrix(R, n_traits, name="R")
    return MME(n_traits, equations, model_terms, term_lookup, lhs_traits, R,
               df=df, control=control)


def _check_fresh(mme: MME) -> None:
    if mme.is_assembled:
        raise RuntimeError(_REBUILD_MESSAGE)


def set_covariate(mme: MME, *variables: str) -> None:
    """
    Set variables to be covariates.

    Parameters
    ----------
    mme : MME
        Model returned by ``build_model``
    *variables : str
        Variable names; each string may hold several names separated by spaces

    Examples
    --------
    >>> set_covariate(mme, "age", "year")
    >>> set_covariate(mme, "age year")
    """
    _check_fresh(mme)
    for names in variables:
        for name in names.split():
            if name not in mme.covariates:
                mme.covariates.append(name)


def _resolve_terms(mme: MME, variables: str) -> List[str]:
    """Expand names like 'Animal' to every trait's term string ('1:Animal', '2:Animal')."""
    resolved: List[str] = []
    for name in variables.split():
        if name in mme.term_lookup:
            matches = [name]
        else:
            matches = [t.term_string for t in mme.model_terms if t.expression == name]
        if not matches:
            raise ValueError(f"Term '{name}' not found in model equations")
        for term_string in matches:
            if term_string not in resolved:
                resolved.append(term_string)
    return resolved


def set_random(mme: MME, variables: str, G: Union[float, np.ndarray],
               pedigree: Optional[RelationshipProvider] = None) -> None:
    """
    Set terms to be random effects.

    Parameters
    ----------
    mme : MME
        Model returned by ``build_model``
    variables : str
        Term expressions (``"Animal"``) or term strings (``"1:Animal"``),
        separated by spaces
    G : float or np.ndarray
        With a pedigree: covariance among all additive genetic terms, in the
        order they appear in the model. Without: variance of the i.i.d.
        random term(s).
    pedigree : RelationshipProvider, optional
        Pedigree for additive genetic terms

    Examples
    --------
    >>> ped = Pedigree.from_dataframe(ped_df)
    >>> set_random(mme, "Animal", 2.5, pedigree=ped)
    >>> set_random(mme, "litter", 0.8)
    """
    _check_fresh(mme)
    terms = _resolve_terms(mme, variables)

    if pedigree is not None:
        if mme.pedigree is not None and mme.pedigree is not pedigree:
            raise ValueError("A different pedigree is already attached to this model")
        for term_string in terms:
            if term_string not in mme.pedigree_terms:
                mme.pedigree_terms.append(term_string)
        # keep pedigree terms in column order
        order = {t.term_string: k for k, t in enumerate(mme.model_terms)}
        mme.pedigree_terms.sort(key=lambda t: order[t])
        mme.pedigree = pedigree
        mme.genetic_covariance = as_covariance_matrix(G, len(mme.pedigree_terms), name="G")
    else:
        variance = float(as_covariance_matrix(G, 1, name="G")[0, 0])
        if variance <= 0:
            raise ValueError(f"Variance of random term(s) {terms} must be positive, got {variance}")
        for term_string in terms:
            mme.random_variances[term_string] = variance
