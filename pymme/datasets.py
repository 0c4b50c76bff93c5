"""
Example datasets for pyMME package.
"""

import pandas as pd
import numpy as np
from typing import Optional, Tuple


def load_toy_pedigree() -> pd.DataFrame:
    """
    Small three-generation pedigree.

    Returns
    -------
    pd.DataFrame
        Columns ``ID``, ``Sire``, ``Dam``; unknown parents are ``"0"``.
        ``a7`` is inbred (offspring of half-sibs ``a4`` and ``a5``).
    """
    return pd.DataFrame({
        'ID':   ['a1', 'a2', 'a3', 'a4', 'a5', 'a6', 'a7', 'a8'],
        'Sire': ['0',  '0',  '0',  'a1', 'a1', 'a4', 'a4', 'a6'],
        'Dam':  ['0',  '0',  '0',  'a2', 'a3', 'a3', 'a5', '0'],
    })


def load_toy_phenotypes() -> pd.DataFrame:
    """
    Phenotypes for part of the toy pedigree.

    Returns
    -------
    pd.DataFrame
        Columns:
        - ID: animal (factor, matches ``load_toy_pedigree``)
        - dam: dam of the animal, ``"0"`` when unknown
        - sex: factor
        - age: covariate
        - BW: body weight (trait)
        - CW: carcass weight (trait, one value missing)

    Examples
    --------
    >>> data = load_toy_phenotypes()
    >>> data.shape
    (5, 6)
    """
    return pd.DataFrame({
        'ID':  ['a4', 'a5', 'a6', 'a7', 'a8'],
        'dam': ['a2', 'a3', 'a3', 'a5', '0'],
        'sex': ['M', 'F', 'F', 'M', 'M'],
        'age': [2.0, 3.0, 4.0, 2.0, 3.0],
        'BW':  [100.0, 50.0, 150.0, 40.0, 120.0],
        'CW':  [10.0, 12.5, np.nan, 11.0, 14.0],
    })


def generate_animal_data(
    n_founders: int = 10,
    n_offspring: int = 40,
    n_herds: int = 3,
    heritability: float = 0.3,
    phenotypic_variance: float = 100.0,
    missing_rate: float = 0.0,
    seed: Optional[int] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Simulate a pedigree and single-trait phenotypes under an animal model.

    Parameters
    ----------
    n_founders : int, default=10
        Number of founders (half sires, half dams)
    n_offspring : int, default=40
        Number of phenotyped offspring
    n_herds : int, default=3
        Number of herd levels
    heritability : float, default=0.3
        Narrow-sense heritability
    phenotypic_variance : float, default=100.0
        Total phenotypic variance
    missing_rate : float, default=0.0
        Proportion of phenotypes set to missing
    seed : int, optional
        Random seed for reproducibility

    Returns
    -------
    pedigree : pd.DataFrame
        Columns ``ID``, ``Sire``, ``Dam``
    data : pd.DataFrame
        Columns ``ID``, ``herd``, ``age``, ``y``
    """
    if seed is not None:
        np.random.seed(seed)

    sigma_a = heritability * phenotypic_variance
    sigma_e = phenotypic_variance - sigma_a

    n_sires = max(n_founders // 2, 1)
    founders = [f"f{i + 1}" for i in range(n_founders)]
    sires = founders[:n_sires]
    dams = founders[n_sires:] or founders[:1]

    bv = {f: np.random.normal(0, np.sqrt(sigma_a)) for f in founders}
    ids, sire_col, dam_col = list(founders), ['0'] * n_founders, ['0'] * n_founders
    offspring = []
    for k in range(n_offspring):
        s = np.random.choice(sires)
        d = np.random.choice(dams)
        child = f"o{k + 1}"
        # Mendelian sampling variance of non-inbred parents
        bv[child] = 0.5 * (bv[s] + bv[d]) + np.random.normal(0, np.sqrt(0.5 * sigma_a))
        ids.append(child)
        sire_col.append(s)
        dam_col.append(d)
        offspring.append(child)

    pedigree = pd.DataFrame({'ID': ids, 'Sire': sire_col, 'Dam': dam_col})

    herds = np.random.choice([f"h{i + 1}" for i in range(n_herds)], size=n_offspring)
    herd_effects = {h: np.random.normal(0, 5) for h in np.unique(herds)}
    age = np.round(np.random.uniform(1, 5, n_offspring), 1)
    y = (50 + np.array([herd_effects[h] for h in herds]) + 2.0 * age
         + np.array([bv[o] for o in offspring])
         + np.random.normal(0, np.sqrt(sigma_e), n_offspring))

    if missing_rate > 0:
        missing = np.random.random(n_offspring) < missing_rate
        y = np.where(missing, np.nan, y)

    data = pd.DataFrame({'ID': offspring, 'herd': herds, 'age': age, 'y': y})
    return pedigree, data
