"""
Correspondence analysis of the sample x partition count matrix.

Thin layer over scipy.linalg.svd of the standardized residuals; the
coordinates are consumed for visualization only.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import linalg

from ..errors import EmptySampleError


@dataclass
class CorrespondenceResult:
    """Principal coordinates and per-axis inertia fractions."""
    row_coordinates: np.ndarray         # (n_samples, n_components)
    column_coordinates: np.ndarray      # (n_occupied_partitions, n_components)
    column_index: np.ndarray            # partition index of each column row
    singular_values: np.ndarray
    inertia_fraction: np.ndarray        # per returned axis, over total inertia

    def row_frame(self, sample_ids: Optional[List[str]] = None) -> pd.DataFrame:
        """Row coordinates as a DataFrame with columns CA1, CA2, ..."""
        columns = [f"CA{i + 1}" for i in range(self.row_coordinates.shape[1])]
        index = pd.Index(sample_ids, name='sample_id') if sample_ids is not None else None
        return pd.DataFrame(self.row_coordinates, index=index, columns=columns)


def correspondence_analysis(
    counts: np.ndarray,
    n_components: int = 2,
    sample_ids: Optional[Sequence[str]] = None,
) -> CorrespondenceResult:
    """
    Correspondence analysis of a nonnegative count matrix.

    Partitions with no cells in any sample are dropped before factorization.

    Args:
        counts: Count matrix, rows = samples, columns = partition indices
        n_components: Number of principal axes to return
        sample_ids: Row names, used to report an empty sample by id

    Returns:
        CorrespondenceResult
    """
    N = np.asarray(counts, dtype=np.float64)
    if N.ndim != 2:
        raise ValueError(f"Counts must be a 2D matrix, got shape {N.shape}")
    if sample_ids is not None and len(sample_ids) != N.shape[0]:
        raise ValueError(f"Got {len(sample_ids)} sample ids for {N.shape[0]} rows")
    if np.any(N < 0):
        raise ValueError("Counts must be nonnegative")
    empty_rows = np.flatnonzero(N.sum(axis=1) == 0)
    if empty_rows.size:
        row = int(empty_rows[0])
        raise EmptySampleError(sample_ids[row] if sample_ids is not None else row)

    column_index = np.flatnonzero(N.sum(axis=0) > 0)
    N = N[:, column_index]

    P = N / N.sum()
    r = P.sum(axis=1)
    c = P.sum(axis=0)
    S = (P - np.outer(r, c)) / np.sqrt(np.outer(r, c))

    U, s, Vt = linalg.svd(S, full_matrices=False)

    n_axes = max(0, min(n_components, len(s)))
    total_inertia = float(np.sum(s ** 2))

    row_coords = (U[:, :n_axes] * s[:n_axes]) / np.sqrt(r)[:, np.newaxis]
    col_coords = (Vt[:n_axes].T * s[:n_axes]) / np.sqrt(c)[:, np.newaxis]
    if total_inertia > 0:
        inertia_fraction = s[:n_axes] ** 2 / total_inertia
    else:
        inertia_fraction = np.zeros(n_axes)

    return CorrespondenceResult(
        row_coordinates=row_coords,
        column_coordinates=col_coords,
        column_index=column_index,
        singular_values=s[:n_axes],
        inertia_fraction=inertia_fraction,
    )
