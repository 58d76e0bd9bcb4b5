"""
Pooled per-sample downsampling for partition fitting.

Every sample contributes the same number of cells so that no single sample
dominates the fit regardless of its raw cell count.
"""

import logging
from typing import Sequence

import numpy as np

from ..errors import DimensionMismatchError, EmptySampleError
from ..samples import Sample

logger = logging.getLogger(__name__)


def downsample_cells(
    samples: Sequence[Sample],
    cells_per_sample: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Draw cells uniformly without replacement from each sample and pool them.

    Samples are visited in input order and each draws from the same stream,
    so the pooled matrix is reproducible for a given generator state.

    Args:
        samples: Samples to draw from
        cells_per_sample: Number of cells drawn from each sample
        rng: Random stream

    Returns:
        Pooled cells, shape (sum of draws, n_markers)

    Raises:
        EmptySampleError: If a sample has no cells
        DimensionMismatchError: If samples disagree on the number of markers
    """
    if cells_per_sample < 1:
        raise ValueError(f"cells_per_sample must be positive, got {cells_per_sample}")
    if len(samples) == 0:
        raise ValueError("No samples to downsample")

    n_markers = samples[0].n_markers
    pooled = []

    for sample in samples:
        if sample.n_cells == 0:
            raise EmptySampleError(sample.sample_id)
        if sample.n_markers != n_markers:
            raise DimensionMismatchError(n_markers, sample.n_markers, sample.sample_id)

        if sample.n_cells < cells_per_sample:
            logger.warning("Sample '%s' has %d cells (< %d); using all of them",
                           sample.sample_id, sample.n_cells, cells_per_sample)
            pooled.append(sample.cells)
            continue

        idx = rng.choice(sample.n_cells, size=cells_per_sample, replace=False)
        pooled.append(sample.cells[idx])

    cells = np.vstack(pooled)
    logger.info("Pooled %d cells from %d samples for partition fitting",
                cells.shape[0], len(samples))
    return cells
