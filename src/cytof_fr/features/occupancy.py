"""
Partition-occupancy featurization of samples.

A sample becomes a dense length-K count vector (cells per partition index) and
its L1-normalized proportion form. Class labels play no part here.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

import numpy as np
import pandas as pd

from ..clustering.base import Partition
from ..errors import EmptySampleError
from ..samples import Sample


@dataclass(frozen=True, eq=False)
class Occupancy:
    """Occupancy of one sample over the partition."""
    sample_id: str
    counts: np.ndarray
    proportions: np.ndarray


def featurize(partition: Partition, sample: Sample) -> Occupancy:
    """
    Count the sample's cells in each partition index.

    Args:
        partition: Fitted partition
        sample: Sample to featurize

    Returns:
        Occupancy with dense length-K counts and proportions

    Raises:
        EmptySampleError: If the sample has no cells
        DimensionMismatchError: If the sample's marker count differs from the partition's
    """
    if sample.n_cells == 0:
        raise EmptySampleError(sample.sample_id)

    labels = partition.assign_batch(sample.cells, sample_id=sample.sample_id)
    counts = np.bincount(labels, minlength=partition.n_partitions).astype(np.int64)
    proportions = counts / counts.sum()

    return Occupancy(sample_id=sample.sample_id, counts=counts, proportions=proportions)


@dataclass(frozen=True, eq=False)
class OccupancyTable:
    """
    Sample x partition count matrix.

    Rows follow the order of sample_ids; column j is partition index j.
    """
    sample_ids: List[str]
    counts: np.ndarray

    def __post_init__(self):
        counts = np.asarray(self.counts)
        if counts.ndim != 2 or counts.shape[0] != len(self.sample_ids):
            raise ValueError(
                f"Counts shape {counts.shape} does not match {len(self.sample_ids)} samples"
            )
        empty = np.flatnonzero(counts.sum(axis=1) == 0)
        if empty.size:
            raise EmptySampleError(self.sample_ids[empty[0]])
        object.__setattr__(self, 'counts', counts)
        object.__setattr__(self, 'sample_ids', list(self.sample_ids))

    @property
    def n_partitions(self) -> int:
        return self.counts.shape[1]

    @property
    def proportions(self) -> np.ndarray:
        return self.counts / self.counts.sum(axis=1, keepdims=True)

    def features(self, kind: str = 'proportions') -> np.ndarray:
        """Return 'proportions' or 'counts' as a float matrix."""
        if kind == 'proportions':
            return self.proportions
        if kind == 'counts':
            return self.counts.astype(np.float64)
        raise ValueError(f"Unknown feature kind '{kind}'. Must be 'proportions' or 'counts'")

    def subset(self, sample_ids: Sequence[str]) -> 'OccupancyTable':
        """Rows for the given sample ids, in the given order."""
        index = {sid: i for i, sid in enumerate(self.sample_ids)}
        missing = [sid for sid in sample_ids if sid not in index]
        if missing:
            raise KeyError(f"Samples not in occupancy table: {missing}")
        rows = [index[sid] for sid in sample_ids]
        return OccupancyTable(sample_ids=list(sample_ids), counts=self.counts[rows])

    def to_frame(self) -> pd.DataFrame:
        """Counts as a DataFrame indexed by sample id."""
        return pd.DataFrame(
            self.counts,
            index=pd.Index(self.sample_ids, name='sample_id'),
            columns=[str(j) for j in range(self.n_partitions)],
        )

    def to_csv(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame().to_csv(path)
        return path

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> 'OccupancyTable':
        df = pd.read_csv(path, dtype={'sample_id': str}).set_index('sample_id')
        return cls(sample_ids=list(df.index), counts=df.to_numpy(dtype=np.int64))


def build_occupancy_table(partition: Partition, samples: Sequence[Sample]) -> OccupancyTable:
    """
    Featurize every sample into one count matrix.

    Args:
        partition: Fitted partition
        samples: Samples, one row each in input order

    Returns:
        OccupancyTable of shape (n_samples, K)
    """
    if len(samples) == 0:
        raise ValueError("No samples to featurize")
    ids = [s.sample_id for s in samples]
    if len(set(ids)) != len(ids):
        raise ValueError("Sample ids must be unique")

    rows = [featurize(partition, s).counts for s in samples]
    return OccupancyTable(sample_ids=ids, counts=np.vstack(rows))
