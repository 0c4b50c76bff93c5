"""
Model terms and column bookkeeping for mixed model equations.
"""

import numpy as np
from scipy import sparse
from typing import Optional, List, Dict, Hashable


class LevelIndex:
    """
    Insertion-ordered map from level label to column index.

    The first label inserted gets column 0, the next new label column 1,
    and so on. Looking up a label that was never inserted raises ``KeyError``.

    Examples
    --------
    >>> idx = LevelIndex()
    >>> idx.lookup_or_insert("A1"), idx.lookup_or_insert("A2"), idx.lookup_or_insert("A1")
    (0, 1, 0)
    >>> idx.ordered_keys()
    ['A1', 'A2']
    """

    def __init__(self, keys=None):
        self._index: Dict[Hashable, int] = {}
        if keys is not None:
            for key in keys:
                self.lookup_or_insert(key)

    def lookup_or_insert(self, key: Hashable) -> int:
        """Return the column of ``key``, appending it first if it is new."""
        column = self._index.get(key)
        if column is None:
            column = len(self._index)
            self._index[key] = column
        return column

    def index(self, key: Hashable) -> int:
        """Return the column of ``key``."""
        try:
            return self._index[key]
        except KeyError:
            raise KeyError(f"Level '{key}' not found in level index") from None

    def ordered_keys(self) -> list:
        return list(self._index)

    def __contains__(self, key) -> bool:
        return key in self._index

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"LevelIndex(n_levels={len(self)})"


class BlockInfo:
    """
    Columns ``start:stop`` of the MME owned by one term.

    ``is_random`` marks terms registered with ``set_random``. ``len(block)``
    is the number of levels of the term.
    """
    __slots__ = ("name", "start", "stop", "is_random")

    def __init__(self, name: str, start: int, stop: int, is_random: bool = False):
        self.name = name
        self.start = start
        self.stop = stop
        self.is_random = is_random

    def __len__(self) -> int:
        return self.stop - self.start

    def __repr__(self) -> str:
        return f"BlockInfo('{self.name}', {self.start}:{self.stop}, random={self.is_random})"


class ModelTerm:
    """
    One additive term on the right-hand side of one trait's equation.

    Parameters
    ----------
    expression : str
        Term expression as written in the model, e.g. ``"A*B"``
    trait_index : int
        1-based index of the equation the term belongs to

    Attributes
    ----------
    term_string : str
        Canonical key ``"<trait_index>:<expression>"``, e.g. ``"1:A*B"``
    factors : list of str
        Factor names of the term in the order written
    level_strings : np.ndarray or None
        Per-observation level encoding, filled by ``get_data``
    values : np.ndarray or None
        Per-observation numeric contribution, filled by ``get_data``
    level_names : list
        Distinct levels in column order, filled by ``get_x``
    start_column : int or None
        First column of the term in the design matrix
    incidence_block : scipy.sparse matrix or None
        The term's incidence matrix
    """

    def __init__(self, expression: str, trait_index: int):
        expression = expression.strip()
        self.expression = expression
        self.trait_index = int(trait_index)
        self.term_string = f"{self.trait_index}:{expression}"
        self.factors: List[str] = [f.strip() for f in expression.split("*")]
        self.n_factors = len(self.factors)

        self.level_strings: Optional[np.ndarray] = None
        self.values: Optional[np.ndarray] = None
        self.level_names: list = []
        self.n_levels = 0
        self.start_column: Optional[int] = None
        self.incidence_block: Optional[sparse.spmatrix] = None

    @property
    def is_intercept(self) -> bool:
        return self.factors[0] == "intercept"

    @property
    def stop_column(self) -> Optional[int]:
        if self.start_column is None:
            return None
        return self.start_column + self.n_levels

    def block_info(self, is_random: bool = False) -> BlockInfo:
        """Column range of this term; only valid after assembly."""
        if self.start_column is None:
            raise ValueError(f"Term '{self.term_string}' has not been placed in the MME yet")
        return BlockInfo(self.term_string, self.start_column, self.stop_column, is_random)

    def __repr__(self) -> str:
        return f"ModelTerm('{self.term_string}', n_levels={self.n_levels}, start={self.start_column})"
