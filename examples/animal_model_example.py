#!/usr/bin/env python3
"""
pyMME Example: building mixed model equations for an animal model

This script shows how to:

1. Build a single-trait animal model with a pedigree
2. Build a multi-trait model with missing phenotypes
3. Inspect the column layout and plot the sparsity pattern
"""

import numpy as np
import matplotlib.pyplot as plt
import sys
import os

# Add parent directory to path to find pymme package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pymme import (build_model, set_covariate, set_random, get_mme, effect_names,
                   Pedigree, MMEControl, plot_mme)
from pymme.datasets import generate_animal_data, load_toy_pedigree, load_toy_phenotypes


def main():
    """Build single- and multi-trait equations on simulated and toy data."""

    print("=" * 70)
    print("pyMME Example: mixed model equations for an animal model")
    print("=" * 70)

    # -------------------------------------------------------------------------
    # 1. Single trait
    # -------------------------------------------------------------------------
    print("\n1. Single-trait animal model on simulated data...")
    pedigree_df, data = generate_animal_data(n_founders=20, n_offspring=200,
                                             heritability=0.3, missing_rate=0.1, seed=2024)
    ped = Pedigree.from_dataframe(pedigree_df)
    print(f"   - {len(data)} records, {ped.size} animals in pedigree")

    mme = build_model("y = intercept + herd + age + ID", 70.0,
                      control=MMEControl(monitoring=True))
    set_covariate(mme, "age")
    set_random(mme, "ID", 30.0, pedigree=ped)
    get_mme(mme, data)

    names = effect_names(mme)
    print(f"   - {len(names)} effects, first five: {names[:5]}")

    # -------------------------------------------------------------------------
    # 2. Multi trait
    # -------------------------------------------------------------------------
    print("\n2. Two-trait model on toy data...")
    data = load_toy_phenotypes()
    ped = Pedigree.from_dataframe(load_toy_pedigree())
    R = np.array([[6.72, 2.48], [2.48, 7.08]])
    G = np.array([[2.0, 0.5], [0.5, 1.5]])

    mme2 = build_model("""BW = intercept + age + sex + ID
                          CW = intercept + sex + ID""", R)
    set_covariate(mme2, "age")
    set_random(mme2, "ID", G, pedigree=ped)
    get_mme(mme2, data)

    for block in mme2.blocks():
        print(f"   - {block}")
    print(f"   - LHS is {mme2.lhs.shape[0]} x {mme2.lhs.shape[1]}, {mme2.lhs.nnz} non-zeros")

    # -------------------------------------------------------------------------
    # 3. Plot
    # -------------------------------------------------------------------------
    print("\n3. Plotting sparsity pattern...")
    fig = plot_mme(mme2, which='both', figsize=(12, 6))
    fig.savefig('mme_sparsity.png', dpi=150)
    plt.close(fig)
    print("   - Saved mme_sparsity.png")


if __name__ == "__main__":
    main()
