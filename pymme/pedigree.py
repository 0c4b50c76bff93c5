"""
Pedigree handling and the inverse numerator relationship matrix.

The assembler only needs three things from a pedigree: the ordered list of
individuals (which fixes the columns of additive genetic terms), the column
of an individual, and a factor ``HAi`` with ``HAi' HAi = A^{-1}``. These are
declared by :class:`RelationshipProvider`; :class:`Pedigree` implements them
from a three-column (individual, sire, dam) table using Henderson's rules
with inbreeding.
"""

import heapq
import numpy as np
import pandas as pd
import warnings
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from .utils import as_level_strings


class PedNode:
    """
    One individual of a pedigree.

    Attributes
    ----------
    seq_id : int
        1-based position in the coded pedigree (parents come before offspring)
    sire, dam : str or None
        Parent IDs, None when unknown
    f : float
        Inbreeding coefficient
    """
    __slots__ = ("seq_id", "sire", "dam", "f")

    def __init__(self, seq_id: int = 0, sire: Optional[str] = None,
                 dam: Optional[str] = None, f: float = 0.0):
        self.seq_id = seq_id
        self.sire = sire
        self.dam = dam
        self.f = f

    def __repr__(self) -> str:
        return f"PedNode(seq_id={self.seq_id}, sire={self.sire!r}, dam={self.dam!r}, f={self.f:.4f})"


class RelationshipProvider(ABC):
    """Base class for relationship structures used by additive genetic terms."""

    @property
    @abstractmethod
    def id_map(self) -> Dict[str, PedNode]:
        """Mapping from individual ID to its node."""
        pass

    @abstractmethod
    def ordered_ids(self) -> List[str]:
        """All individual IDs in column order."""
        pass

    @abstractmethod
    def hai(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Row, column and value triples of a factor H with H'H = A^{-1}."""
        pass

    @property
    def size(self) -> int:
        return len(self.id_map)

    def column(self, individual_id: str) -> int:
        """0-based column of ``individual_id``."""
        try:
            return self.id_map[individual_id].seq_id - 1
        except KeyError:
            raise KeyError(f"Individual '{individual_id}' not found in pedigree") from None


class Pedigree(RelationshipProvider):
    """
    Pedigree coded so that parents precede their offspring.

    Build one with :meth:`from_dataframe`.

    Examples
    --------
    >>> ped = Pedigree.from_dataframe(pd.DataFrame({
    ...     'id': ['a1', 'a2', 'a3'], 'sire': ['0', '0', 'a1'], 'dam': ['0', '0', 'a2']}))
    >>> ped.ordered_ids()
    ['a1', 'a2', 'a3']
    """

    def __init__(self):
        self._id_map: Dict[str, PedNode] = {}
        self._ordered_ids: List[str] = []
        self._mendelian: Optional[np.ndarray] = None

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame,
                       missing_strings: Sequence[str] = ("0", "missing", "")) -> "Pedigree":
        """
        Construct a pedigree from a DataFrame.

        Parameters
        ----------
        df : pd.DataFrame
            The first three columns are individual, sire and dam
        missing_strings : sequence of str
            Parent codes that mean "unknown"

        Returns
        -------
        Pedigree
            Coded pedigree with inbreeding coefficients
        """
        if not isinstance(df, pd.DataFrame):
            raise ValueError("Pedigree must be a pandas DataFrame")
        if df.shape[1] < 3:
            raise ValueError("Pedigree DataFrame must have at least 3 columns: individual, sire, dam.")

        ped = cls()
        missing = set(missing_strings)
        individuals = as_level_strings(df.iloc[:, 0])
        sires = [None if s in missing else s for s in as_level_strings(df.iloc[:, 1])]
        dams = [None if d in missing else d for d in as_level_strings(df.iloc[:, 2])]

        # Parents that never appear as individuals are founders
        listed = set(individuals)
        for parent in sires + dams:
            if parent is not None and parent not in listed and parent not in ped._id_map:
                ped._id_map[parent] = PedNode()
        seen = set()
        for ind, sire, dam in zip(individuals, sires, dams):
            if ind in missing:
                raise ValueError(f"Individual ID '{ind}' is a missing-parent code")
            if ind in seen:
                warnings.warn(f"Individual '{ind}' appears more than once in pedigree. Using last record.")
            seen.add(ind)
            node = ped._id_map.setdefault(ind, PedNode())
            node.sire, node.dam = sire, dam

        ped._code()
        ped._calc_inbreeding()
        return ped

    @property
    def id_map(self) -> Dict[str, PedNode]:
        return self._id_map

    def ordered_ids(self) -> List[str]:
        return list(self._ordered_ids)

    def _code(self) -> None:
        """Assign sequential IDs, parents before offspring."""
        counter = 1
        for start in self._id_map:
            if self._id_map[start].seq_id:
                continue
            stack = [start]
            on_path = set()
            while stack:
                ind = stack[-1]
                node = self._id_map[ind]
                if node.seq_id:
                    stack.pop()
                    continue
                on_path.add(ind)
                pending = [p for p in (node.sire, node.dam)
                           if p is not None and not self._id_map[p].seq_id]
                for p in pending:
                    if p in on_path:
                        raise ValueError(f"Pedigree loop detected at individual '{p}'")
                if pending:
                    stack.extend(pending)
                    continue
                node.seq_id = counter
                counter += 1
                self._ordered_ids.append(ind)
                on_path.discard(ind)
                stack.pop()

    def _parent_columns(self) -> Tuple[np.ndarray, np.ndarray]:
        """1-based parent positions per individual, 0 when unknown."""
        n = self.size
        sire = np.zeros(n, dtype=int)
        dam = np.zeros(n, dtype=int)
        for k, ind in enumerate(self._ordered_ids):
            node = self._id_map[ind]
            if node.sire is not None:
                sire[k] = self._id_map[node.sire].seq_id
            if node.dam is not None:
                dam[k] = self._id_map[node.dam].seq_id
        return sire, dam

    def _calc_inbreeding(self) -> None:
        """Inbreeding coefficients and Mendelian sampling variances (Meuwissen and Luo, 1992)."""
        n = self.size
        sire, dam = self._parent_columns()
        # position 0 stands for an unknown parent
        F = np.zeros(n + 1)
        F[0] = -1.0
        D = np.zeros(n + 1)
        for i in range(1, n + 1):
            s, d = sire[i - 1], dam[i - 1]
            D[i] = 0.5 - 0.25 * (F[s] + F[d])
            if s == 0 or d == 0:
                F[i] = 0.0
                continue
            if i > 1 and s == sire[i - 2] and d == dam[i - 2]:
                F[i] = F[i - 1]
                continue
            L = {i: 1.0}
            heap = [-i]
            fi = -1.0
            while heap:
                j = -heapq.heappop(heap)
                lj = L.pop(j)
                for p in (sire[j - 1], dam[j - 1]):
                    if p == 0:
                        continue
                    if p not in L:
                        L[p] = 0.0
                        heapq.heappush(heap, -p)
                    L[p] += 0.5 * lj
                fi += lj * lj * D[j]
            F[i] = fi

        for k, ind in enumerate(self._ordered_ids):
            self._id_map[ind].f = float(F[k + 1])
        self._mendelian = D[1:]

    @property
    def inbreeding(self) -> Dict[str, float]:
        return {ind: self._id_map[ind].f for ind in self._ordered_ids}

    def hai(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Triples of ``H = D^{-1/2} (I - P)``, where P holds 0.5 at the parent
        columns of each row, so that ``H' H = A^{-1}``.

        Returns
        -------
        rows, cols, vals : np.ndarray
            0-based coordinates and values
        """
        sire, dam = self._parent_columns()
        scale = 1.0 / np.sqrt(self._mendelian)
        rows, cols, vals = [], [], []
        for k in range(self.size):
            rows.append(k)
            cols.append(k)
            vals.append(scale[k])
            for p in (sire[k], dam[k]):
                if p:
                    rows.append(k)
                    cols.append(p - 1)
                    vals.append(-0.5 * scale[k])
        return np.array(rows, dtype=int), np.array(cols, dtype=int), np.array(vals, dtype=float)

    def additive_matrix(self) -> np.ndarray:
        """
        Dense numerator relationship matrix A by the tabular method.

        Quadratic in pedigree size; meant for checks on small pedigrees.
        """
        n = self.size
        sire, dam = self._parent_columns()
        A = np.zeros((n, n))
        for i in range(n):
            s, d = sire[i] - 1, dam[i] - 1
            for j in range(i):
                a = 0.0
                if s >= 0:
                    a += 0.5 * A[j, s]
                if d >= 0:
                    a += 0.5 * A[j, d]
                A[i, j] = A[j, i] = a
            A[i, i] = 1.0 + (0.5 * A[s, d] if s >= 0 and d >= 0 else 0.0)
        return A

    def __repr__(self) -> str:
        return f"<Pedigree with {self.size} individuals>"
