"""
Sample loading and result writing.

The manifest is a CSV with one row per sample:

    sample_id,donor,condition,path
    D1_unstim,D1,unstim,cells/D1_unstim.npy
    D1_IFNa,D1,IFNa,cells/D1_IFNa.csv

Each path points to a cell matrix: .npy (n_cells, n_markers) or .csv with one
column per marker. Relative paths are resolved against the manifest directory.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .samples import Sample

logger = logging.getLogger(__name__)

MANIFEST_COLUMNS = ['sample_id', 'donor', 'condition', 'path']


def load_cells(path: Union[str, Path], markers: Optional[Sequence[str]] = None) -> np.ndarray:
    """
    Load one cell matrix.

    Args:
        path: .npy or .csv file
        markers: Columns to keep (CSV only)

    Returns:
        Array of shape (n_cells, n_markers)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Cell file not found: {path}")

    if path.suffix == '.npy':
        if markers is not None:
            raise ValueError(f"Marker selection needs named columns; {path} is .npy")
        cells = np.load(path)
    elif path.suffix == '.csv':
        df = pd.read_csv(path)
        if markers is not None:
            missing = [m for m in markers if m not in df.columns]
            if missing:
                raise ValueError(f"Markers {missing} not found in {path}. "
                                 f"Available columns: {list(df.columns)}")
            df = df[list(markers)]
        cells = df.select_dtypes(include=[np.number]).to_numpy()
    else:
        raise ValueError(f"Unsupported cell file type: {path.suffix}")

    return np.asarray(cells, dtype=np.float64)


def load_samples(
    manifest_csv: Union[str, Path],
    markers: Optional[Sequence[str]] = None,
) -> List[Sample]:
    """
    Load all samples listed in a manifest.

    Args:
        manifest_csv: Path to manifest CSV
        markers: Marker columns to keep (None = all numeric columns)

    Returns:
        Samples in manifest order
    """
    manifest_csv = Path(manifest_csv)
    if not manifest_csv.exists():
        raise FileNotFoundError(f"Manifest not found: {manifest_csv}")

    df = pd.read_csv(manifest_csv, dtype=str)
    missing = [c for c in MANIFEST_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Manifest {manifest_csv} is missing columns {missing}")
    if df['sample_id'].duplicated().any():
        dupes = df.loc[df['sample_id'].duplicated(), 'sample_id'].tolist()
        raise ValueError(f"Duplicate sample ids in manifest: {dupes}")

    samples = []
    for row in df.itertuples(index=False):
        cell_path = Path(row.path)
        if not cell_path.is_absolute():
            cell_path = manifest_csv.parent / cell_path
        cells = load_cells(cell_path, markers)
        samples.append(Sample(
            sample_id=row.sample_id,
            donor=row.donor,
            condition=row.condition,
            cells=cells,
        ))
        logger.debug("Loaded %s: %d cells x %d markers", row.sample_id, *cells.shape)

    logger.info("Loaded %d samples from %s", len(samples), manifest_csv)
    return samples


def save_results(result, output_dir: Union[str, Path]) -> List[Path]:
    """
    Write an AnalysisResult to a directory.

    Files:
        partition.npz            centroids
        occupancy_counts.csv     sample x partition counts
        embedding.csv            correspondence analysis row coordinates
        embedding_inertia.csv    inertia fraction per axis
        tests.csv                one row per tested condition pair
        null_distributions.npz   null pure counts, keyed '<a>__vs__<b>'

    Returns:
        List of written paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    saved = [
        result.partition.save(output_dir / 'partition.npz'),
        result.occupancy.to_csv(output_dir / 'occupancy_counts.csv'),
    ]

    embedding_csv = output_dir / 'embedding.csv'
    frame = result.embedding.row_frame(result.occupancy.sample_ids)
    frame.to_csv(embedding_csv)
    saved.append(embedding_csv)

    tests_csv = output_dir / 'tests.csv'
    result.tests_frame().to_csv(tests_csv, index=False)
    saved.append(tests_csv)

    nulls_npz = output_dir / 'null_distributions.npz'
    np.savez(nulls_npz, **{
        f"{a}__vs__{b}": r.null_distribution for (a, b), r in result.tests.items()
    })
    saved.append(nulls_npz)

    inertia_csv = output_dir / 'embedding_inertia.csv'
    pd.DataFrame({
        'axis': [f"CA{i + 1}" for i in range(len(result.embedding.inertia_fraction))],
        'inertia_fraction': result.embedding.inertia_fraction,
    }).to_csv(inertia_csv, index=False)
    saved.append(inertia_csv)

    for path in saved:
        logger.info("Saved %s", path)
    return saved
