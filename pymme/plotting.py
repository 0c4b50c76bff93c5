"""
Plotting functions for assembled mixed model equations.
"""

import matplotlib.pyplot as plt
from typing import Optional, Tuple


def plot_mme(mme: 'MME', which: str = 'lhs', figsize: Tuple[int, int] = (8, 8),
             markersize: float = 2.0) -> plt.Figure:
    """
    Plot the sparsity pattern of an assembled MME.

    Term boundaries are drawn as thin lines.

    Parameters
    ----------
    mme : MME
        Assembled mixed model equations
    which : str, default='lhs'
        Matrix to plot: 'lhs', 'design' or 'both'
    figsize : tuple, default=(8, 8)
        Figure size
    markersize : float, default=2.0
        Marker size passed to ``spy``

    Returns
    -------
    plt.Figure
        Matplotlib figure object
    """
    if mme.X is None:
        raise ValueError("MME must be assembled before plotting")
    if which == 'both':
        fig, axes = plt.subplots(1, 2, figsize=figsize)
        _plot_matrix(mme, mme.X, 'Design matrix X', axes[0], markersize, rows_are_terms=False)
        _plot_matrix(mme, mme.lhs, 'Left-hand side', axes[1], markersize, rows_are_terms=True)
        plt.tight_layout()
        return fig
    elif which == 'lhs':
        fig, ax = plt.subplots(figsize=figsize)
        _plot_matrix(mme, mme.lhs, 'Left-hand side', ax, markersize, rows_are_terms=True)
        return fig
    elif which == 'design':
        fig, ax = plt.subplots(figsize=figsize)
        _plot_matrix(mme, mme.X, 'Design matrix X', ax, markersize, rows_are_terms=False)
        return fig
    else:
        raise ValueError(f"Unknown plot type: {which}")


def _plot_matrix(mme, matrix, title: str, ax: Optional[plt.Axes], markersize: float,
                 rows_are_terms: bool) -> None:
    ax.spy(matrix, markersize=markersize)
    for block in mme.blocks()[1:]:
        ax.axvline(block.start - 0.5, color='grey', linewidth=0.5)
        if rows_are_terms:
            ax.axhline(block.start - 0.5, color='grey', linewidth=0.5)
    if not rows_are_terms:
        n_obs = matrix.shape[0] // max(mme.n_traits, 1)
        for t in range(1, mme.n_traits):
            ax.axhline(t * n_obs - 0.5, color='grey', linewidth=0.5)
    ax.set_title(title)
