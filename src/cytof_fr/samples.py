"""
Sample container: one donor x stimulation condition with its cells.
"""

from dataclasses import dataclass, field
from typing import Hashable

import numpy as np


@dataclass(frozen=True, eq=False)
class Sample:
    """A biological sample and the receptor intensities of its cells."""
    sample_id: str
    donor: Hashable                     # stratum for permutations
    condition: Hashable                 # class label for the tester
    cells: np.ndarray = field(repr=False)

    def __post_init__(self):
        cells = np.asarray(self.cells, dtype=np.float64)
        if cells.ndim == 1 and cells.size == 0:
            cells = cells.reshape(0, 0)
        if cells.ndim != 2:
            raise ValueError(
                f"Sample '{self.sample_id}': cells must be 2D (n_cells, n_markers), "
                f"got shape {cells.shape}"
            )
        object.__setattr__(self, 'cells', cells)

    @property
    def n_cells(self) -> int:
        return self.cells.shape[0]

    @property
    def n_markers(self) -> int:
        return self.cells.shape[1]
