"""
Friedman-Rafsky two-sample test on a fixed minimum spanning tree.

The statistic is the number of "pure" MST edges, whose two endpoints carry the
same class. Under a class effect, samples of one class sit near each other and
the tree connects them among themselves, so the pure count is high relative to
the permutation null. The null keeps the tree fixed and permutes class labels
within each stratum (donor), since the tree depends on distances only.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed, effective_n_jobs

from ..errors import InvalidClassSelectionError

logger = logging.getLogger(__name__)

NodeValues = Union[Sequence[Hashable], Mapping[int, Hashable], np.ndarray]


@dataclass
class FriedmanRafskyResult:
    """Outcome of one Friedman-Rafsky test."""
    classes: Tuple[Hashable, Hashable]
    observed_pure_count: int
    null_distribution: np.ndarray = field(repr=False)
    p_value: float
    n_nodes: int
    n_edges: int

    @property
    def n_permutations(self) -> int:
        return len(self.null_distribution)

    @property
    def z_score(self) -> float:
        """Observed count standardized by the null mean and standard deviation."""
        sd = float(np.std(self.null_distribution))
        if sd == 0.0:
            return float('nan')
        return (self.observed_pure_count - float(np.mean(self.null_distribution))) / sd

    def to_dict(self) -> Dict[str, Any]:
        return {
            'class_a': self.classes[0],
            'class_b': self.classes[1],
            'n_nodes': self.n_nodes,
            'n_edges': self.n_edges,
            'observed_pure_count': self.observed_pure_count,
            'null_mean': float(np.mean(self.null_distribution)),
            'null_std': float(np.std(self.null_distribution)),
            'z_score': self.z_score,
            'n_permutations': self.n_permutations,
            'p_value': self.p_value,
        }


def count_pure_edges(edges: np.ndarray, codes: np.ndarray) -> int:
    """
    Number of edges whose endpoints share a class code.

    Args:
        edges: Array with at least two columns [source, target]
        codes: Integer class code per node

    Returns:
        Pure edge count
    """
    edges = np.asarray(edges)
    if edges.shape[0] == 0:
        return 0
    src = edges[:, 0].astype(int)
    dst = edges[:, 1].astype(int)
    return int(np.count_nonzero(codes[src] == codes[dst]))


def permute_within_strata(
    codes: np.ndarray,
    strata_index: List[np.ndarray],
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Shuffle class codes independently inside each stratum.

    Args:
        codes: Class code per node
        strata_index: Node indices of each stratum
        rng: Random stream

    Returns:
        Permuted copy of codes; nodes never move across strata
    """
    permuted = codes.copy()
    for idx in strata_index:
        permuted[idx] = rng.permutation(codes[idx])
    return permuted


def _null_pure_counts(
    edges: np.ndarray,
    codes: np.ndarray,
    strata_index: List[np.ndarray],
    seeds: Sequence[np.random.SeedSequence],
) -> np.ndarray:
    """Pure counts for a batch of permutations, one child stream each."""
    out = np.empty(len(seeds), dtype=np.int64)
    for i, seed in enumerate(seeds):
        rng = np.random.default_rng(seed)
        out[i] = count_pure_edges(edges, permute_within_strata(codes, strata_index, rng))
    return out


def _as_node_array(values: NodeValues, n_nodes: int, what: str) -> np.ndarray:
    """Turn a sequence indexed by node, or a node -> value mapping, into an array."""
    if isinstance(values, Mapping):
        missing = [i for i in range(n_nodes) if i not in values]
        if missing:
            raise ValueError(f"{what} missing for nodes {missing[:10]}")
        values = [values[i] for i in range(n_nodes)]
    arr = np.asarray(values, dtype=object)
    if arr.ndim != 1 or len(arr) != n_nodes:
        raise ValueError(f"Expected {n_nodes} {what}, got {len(arr)}")
    return arr


def encode_classes(labels: np.ndarray, classes_of_interest: Sequence[Hashable]) -> Tuple[np.ndarray, Tuple]:
    """
    Encode labels as categorical codes over exactly two classes.

    Raises:
        InvalidClassSelectionError: If the selection is not two distinct classes,
            a class is absent, or a node carries some other label
    """
    classes = list(dict.fromkeys(classes_of_interest))
    if len(classes) != 2:
        raise InvalidClassSelectionError(
            f"Exactly two distinct classes are required, got {classes}", classes
        )

    categorical = pd.Categorical(labels, categories=classes)
    codes = np.asarray(categorical.codes, dtype=np.int64)

    outside = sorted({str(v) for v in labels[codes < 0]})
    if outside:
        raise InvalidClassSelectionError(
            f"Nodes carry labels outside {classes}: {outside}. "
            "Restrict samples to the tested classes before building the tree",
            classes,
        )
    absent = [c for k, c in enumerate(classes) if not np.any(codes == k)]
    if absent:
        raise InvalidClassSelectionError(f"Classes absent from labels: {absent}", classes)

    return codes, tuple(classes)


def friedman_rafsky_test(
    mst_edges: np.ndarray,
    labels: NodeValues,
    strata: NodeValues,
    classes_of_interest: Sequence[Hashable],
    n_permutations: int = 2000,
    seed: Union[int, np.random.SeedSequence] = 0,
    n_jobs: int = 1,
) -> FriedmanRafskyResult:
    """
    Friedman-Rafsky pure-edge test with a stratified permutation null.

    Args:
        mst_edges: Minimum spanning tree, rows [source, target, (weight)]
        labels: Class label per node
        strata: Stratum (donor) per node; labels are permuted only within a stratum
        classes_of_interest: The two classes under test; every node must carry one
        n_permutations: Size of the null distribution
        seed: Root seed; permutation i draws from the i-th spawned child stream
        n_jobs: Number of joblib workers for the permutation loop

    Returns:
        FriedmanRafskyResult. p_value is the fraction of the null plus the
        observed statistic that is >= the observed pure count.
    """
    if n_permutations < 1:
        raise ValueError(f"n_permutations must be positive, got {n_permutations}")

    edges = np.asarray(mst_edges)
    if edges.ndim != 2 or edges.shape[1] < 2:
        raise ValueError(f"MST edges must have shape (n_edges, 2 or 3), got {edges.shape}")

    n_nodes = len(labels)
    label_arr = _as_node_array(labels, n_nodes, 'labels')
    strata_arr = _as_node_array(strata, n_nodes, 'strata')
    if edges.shape[0] != n_nodes - 1:
        raise ValueError(
            f"A spanning tree over {n_nodes} nodes has {n_nodes - 1} edges, got {edges.shape[0]}"
        )

    codes, classes = encode_classes(label_arr, classes_of_interest)

    strata_codes = pd.factorize(pd.Series(strata_arr), sort=False)[0]
    strata_index = [np.flatnonzero(strata_codes == s) for s in np.unique(strata_codes)]
    # Only strata holding both classes change under permutation
    mixed = [idx for idx in strata_index if np.unique(codes[idx]).size > 1]
    n_fixed = len(strata_index) - len(mixed)
    if n_fixed:
        logger.debug("%d of %d strata hold a single class; their labels never move",
                     n_fixed, len(strata_index))
    if not mixed:
        logger.warning("No stratum holds both %s and %s; the null distribution is degenerate",
                       classes[0], classes[1])

    observed = count_pure_edges(edges, codes)

    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    child_seeds = root.spawn(n_permutations)

    if effective_n_jobs(n_jobs) == 1:
        null = _null_pure_counts(edges, codes, mixed, child_seeds)
    else:
        n_batches = min(n_permutations, 4 * effective_n_jobs(n_jobs))
        bounds = np.linspace(0, n_permutations, n_batches + 1).astype(int)
        batches = [child_seeds[a:b] for a, b in zip(bounds[:-1], bounds[1:])]
        parts = Parallel(n_jobs=n_jobs)(
            delayed(_null_pure_counts)(edges, codes, mixed, batch) for batch in batches
        )
        null = np.concatenate(parts)

    p_value = (1.0 + np.count_nonzero(null >= observed)) / (n_permutations + 1.0)

    logger.info("Friedman-Rafsky %s vs %s: %d nodes, %d/%d pure edges, p=%.4g",
                classes[0], classes[1], n_nodes, observed, edges.shape[0], p_value)

    return FriedmanRafskyResult(
        classes=classes,
        observed_pure_count=observed,
        null_distribution=null,
        p_value=float(p_value),
        n_nodes=n_nodes,
        n_edges=int(edges.shape[0]),
    )
