"""Shared fixtures."""

import logging

import pytest
import numpy as np
import pandas as pd

from cytof_fr.samples import Sample
from cytof_fr.utils.log import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers the CLI attaches so they never outlive a test's streams."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def make_samples(n_donors=8, n_cells=300, shift=5.0, seed=0):
    """Unstim and stim sample per donor; stim cells are shifted on the first marker."""
    rng = np.random.default_rng(seed)
    samples = []
    for d in range(n_donors):
        donor = f"D{d + 1}"
        for condition in ('unstim', 'stim'):
            cells = rng.normal(size=(n_cells, 3))
            if condition == 'stim':
                cells[:, 0] += shift
            samples.append(Sample(f"{donor}_{condition}", donor, condition, cells))
    return samples


@pytest.fixture
def stim_samples():
    return make_samples()


@pytest.fixture
def manifest_dir(tmp_path, stim_samples):
    """Manifest CSV plus one .npy cell file per sample, with relative paths."""
    cell_dir = tmp_path / 'cells'
    cell_dir.mkdir()
    rows = []
    for sample in stim_samples:
        np.save(cell_dir / f"{sample.sample_id}.npy", sample.cells)
        rows.append({
            'sample_id': sample.sample_id,
            'donor': sample.donor,
            'condition': sample.condition,
            'path': f"cells/{sample.sample_id}.npy",
        })
    pd.DataFrame(rows).to_csv(tmp_path / 'manifest.csv', index=False)
    return tmp_path
