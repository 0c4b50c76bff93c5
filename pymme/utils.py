"""
Utility functions for pyMME package.
"""

import numpy as np
import pandas as pd
import warnings
from typing import Iterable, List, Union

# Level of a missing ID or parent; pedigree terms skip it.
MISSING_LEVEL = "0"
# Level of a missing value in any other factor.
MISSING_FACTOR_LEVEL = "NA"


def check_columns(data: pd.DataFrame, columns: Iterable[str]) -> None:
    """
    Check that every name in ``columns`` is a column of ``data``.

    Raises
    ------
    ValueError
        If ``data`` is not a DataFrame
    KeyError
        If any column is absent
    """
    if not isinstance(data, pd.DataFrame):
        raise ValueError("data must be a pandas DataFrame")
    missing_cols = [col for col in dict.fromkeys(columns) if col not in data.columns]
    if missing_cols:
        raise KeyError(f"Missing columns in data: {missing_cols}")


def as_level_strings(column: pd.Series, missing: str = MISSING_LEVEL) -> np.ndarray:
    """
    Render a categorical column as one string per observation.

    Whole numbers stored as floats are written without a trailing ``.0`` so
    that an ID column read as float still matches pedigree IDs. Missing
    values become ``missing``.

    Parameters
    ----------
    column : pd.Series
        Factor column
    missing : str, default=MISSING_LEVEL
        Level written for missing values

    Returns
    -------
    np.ndarray
        Object array of level strings
    """
    out = np.empty(len(column), dtype=object)
    for i, value in enumerate(column.to_numpy(dtype=object)):
        if pd.isna(value):
            out[i] = missing
        elif isinstance(value, (float, np.floating)) and float(value).is_integer():
            out[i] = str(int(value))
        else:
            out[i] = str(value).strip()
    return out


def as_numeric(column: pd.Series, name: str) -> np.ndarray:
    """Numeric values of a covariate column; missing or non-numeric entries become 0.0."""
    values = pd.to_numeric(column, errors="coerce")
    n_bad = int(values.isnull().sum())
    if n_bad:
        warnings.warn(f"Covariate '{name}' has {n_bad} missing or non-numeric values. Using 0.0 for them.")
    return values.fillna(0.0).to_numpy(dtype=float)


def as_phenotype(column: pd.Series, name: str, warn: bool = True) -> pd.Series:
    """
    Numeric phenotypes of a trait column, NaN where the record is missing.

    Non-numeric entries (e.g. ``"."``) count as missing. With ``warn=True``
    a warning reports how many were coerced.
    """
    values = pd.to_numeric(column, errors="coerce")
    if warn:
        n_bad = int(values.isnull().sum() - column.isnull().sum())
        if n_bad:
            warnings.warn(f"Trait '{name}' has {n_bad} non-numeric values. Treating them as missing.")
    return values


def observed_phenotypes(data: pd.DataFrame, traits: List[str]) -> np.ndarray:
    """Boolean matrix (n_obs x n_traits) of records with a numeric phenotype."""
    mask = np.ones((len(data), len(traits)), dtype=bool)
    for k, trait in enumerate(traits):
        mask[:, k] = as_phenotype(data[trait], trait, warn=False).notna().to_numpy()
    return mask


def as_covariance_matrix(value: Union[float, np.ndarray], n: int, name: str = "R") -> np.ndarray:
    """
    Coerce a scalar variance or square matrix to an ``n x n`` float array.

    Parameters
    ----------
    value : float or array-like
        Variance (scalar, only when ``n == 1``) or covariance matrix
    n : int
        Expected dimension
    name : str, default='R'
        Name used in error messages

    Returns
    -------
    np.ndarray
        Covariance matrix of shape (n, n)
    """
    matrix = np.atleast_2d(np.asarray(value, dtype=float))
    if matrix.shape != (n, n):
        raise ValueError(f"{name} must be a {n}x{n} matrix, got shape {matrix.shape}")
    if not np.allclose(matrix, matrix.T):
        warnings.warn(f"{name} is not symmetric")
    return matrix
