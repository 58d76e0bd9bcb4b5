"""
End-to-end analysis: downsample, partition, featurize, embed and test.

One root seed drives the run. It is split into an independent stream for
downsampling plus partition fitting, and one child seed per tested condition
pair for the permutation nulls.
"""

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Hashable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..clustering.base import Partition
from ..clustering.kmeans import KMeansPartitioner
from ..embedding.correspondence import CorrespondenceResult, correspondence_analysis
from ..errors import InvalidClassSelectionError
from ..features.downsample import downsample_cells
from ..features.graphs import build_graph, minimum_spanning_tree, pairwise_distances
from ..features.occupancy import OccupancyTable, build_occupancy_table
from ..run.config import RunConfig
from ..samples import Sample
from ..stats.friedman_rafsky import FriedmanRafskyResult, friedman_rafsky_test

logger = logging.getLogger(__name__)

ConditionPair = Tuple[Hashable, Hashable]


@dataclass
class AnalysisResult:
    """Everything a run produces."""
    partition: Partition
    occupancy: OccupancyTable
    embedding: CorrespondenceResult
    tests: Dict[ConditionPair, FriedmanRafskyResult] = field(default_factory=dict)

    def tests_frame(self) -> pd.DataFrame:
        """One row per tested condition pair."""
        rows = [r.to_dict() for r in self.tests.values()]
        columns = ['class_a', 'class_b', 'n_nodes', 'n_edges', 'observed_pure_count',
                   'null_mean', 'null_std', 'z_score', 'n_permutations', 'p_value']
        return pd.DataFrame(rows, columns=columns)


def resolve_condition_pairs(
    conditions: Sequence[Hashable],
    condition_pairs: Optional[Sequence[ConditionPair]] = None,
    reference_condition: Optional[Hashable] = None,
) -> List[ConditionPair]:
    """
    Expand the pair selection into an explicit list.

    Args:
        conditions: Conditions present in the data (first-seen order is kept)
        condition_pairs: Explicit pairs to test
        reference_condition: Test every other condition against this one

    Returns:
        List of (condition_a, condition_b). With neither option set, all pairs.
    """
    present = list(dict.fromkeys(conditions))

    if condition_pairs is not None:
        pairs = [tuple(p) for p in condition_pairs]
        for pair in pairs:
            if len(pair) != 2 or pair[0] == pair[1]:
                raise InvalidClassSelectionError(
                    f"Condition pair must name two distinct conditions, got {pair}", pair
                )
            absent = [c for c in pair if c not in present]
            if absent:
                raise InvalidClassSelectionError(
                    f"Conditions {absent} not found in samples (have {present})", pair
                )
        return pairs

    if reference_condition is not None:
        if reference_condition not in present:
            raise InvalidClassSelectionError(
                f"Reference condition '{reference_condition}' not found in samples "
                f"(have {present})", (reference_condition,)
            )
        return [(reference_condition, c) for c in present if c != reference_condition]

    return list(combinations(present, 2))


def compare_conditions(
    occupancy: OccupancyTable,
    conditions: Mapping[str, Hashable],
    donors: Mapping[str, Hashable],
    pair: ConditionPair,
    metric: str = 'euclidean',
    feature: str = 'proportions',
    n_permutations: int = 2000,
    seed: Union[int, np.random.SeedSequence] = 0,
    n_jobs: int = 1,
) -> FriedmanRafskyResult:
    """
    Friedman-Rafsky test between two conditions.

    The occupancy table is restricted to the samples of the two conditions
    first, and the distance matrix, graph and spanning tree are rebuilt for
    that subset. Rows keep the table's order.

    Args:
        occupancy: Occupancy table covering at least the samples of both conditions
        conditions: Sample id -> condition
        donors: Sample id -> donor (permutation stratum)
        pair: The two conditions under test
        metric: Distance metric between occupancy vectors
        feature: 'proportions' or 'counts'
        n_permutations: Size of the null distribution
        seed: Root seed of the permutation streams
        n_jobs: Number of joblib workers for the permutation loop

    Returns:
        FriedmanRafskyResult
    """
    pair = resolve_condition_pairs(list(conditions.values()), [pair])[0]
    sample_ids = [sid for sid in occupancy.sample_ids
                  if sid in conditions and conditions[sid] in pair]
    missing = [sid for sid in sample_ids if sid not in donors]
    if missing:
        raise ValueError(f"No donor given for samples {missing}")
    subset = occupancy.subset(sample_ids)

    distances = pairwise_distances(subset.features(feature), metric=metric)
    graph = build_graph(distances, names=sample_ids)
    mst = minimum_spanning_tree(graph)

    return friedman_rafsky_test(
        mst,
        labels=[conditions[sid] for sid in sample_ids],
        strata=[donors[sid] for sid in sample_ids],
        classes_of_interest=pair,
        n_permutations=n_permutations,
        seed=seed,
        n_jobs=n_jobs,
    )


def run_analysis(
    samples: Sequence[Sample],
    n_partitions: int = 200,
    cells_per_sample: int = 500,
    max_iterations: int = 100,
    init: str = 'random',
    n_init: Union[int, str] = 'auto',
    n_components: int = 2,
    n_permutations: int = 2000,
    metric: str = 'euclidean',
    feature: str = 'proportions',
    condition_pairs: Optional[Sequence[ConditionPair]] = None,
    reference_condition: Optional[Hashable] = None,
    seed: int = 0,
    n_jobs: int = 1,
) -> AnalysisResult:
    """
    Run the whole analysis on in-memory samples.

    Returns:
        AnalysisResult with the partition, occupancy table, embedding and one
        test result per condition pair
    """
    if len(samples) == 0:
        raise ValueError("No samples to analyze")

    pairs = resolve_condition_pairs(
        [s.condition for s in samples], condition_pairs, reference_condition
    )

    fit_seq, test_seq = np.random.SeedSequence(seed).spawn(2)
    rng = np.random.default_rng(fit_seq)

    pooled = downsample_cells(samples, cells_per_sample, rng)
    partitioner = KMeansPartitioner(
        n_partitions=n_partitions,
        max_iterations=max_iterations,
        init=init,
        random_state=rng,
        n_init=n_init,
    )
    partition = partitioner.fit(pooled)

    occupancy = build_occupancy_table(partition, samples)
    n_occupied = int(np.count_nonzero(occupancy.counts.sum(axis=0)))
    logger.info("Featurized %d samples over %d partitions (%d occupied)",
                len(samples), partition.n_partitions, n_occupied)

    embedding = correspondence_analysis(
        occupancy.counts, n_components=n_components, sample_ids=occupancy.sample_ids
    )

    conditions = {s.sample_id: s.condition for s in samples}
    donors = {s.sample_id: s.donor for s in samples}
    result = AnalysisResult(partition=partition, occupancy=occupancy, embedding=embedding)
    for pair, pair_seq in zip(pairs, test_seq.spawn(len(pairs))):
        result.tests[pair] = compare_conditions(
            occupancy, conditions, donors, pair,
            metric=metric,
            feature=feature,
            n_permutations=n_permutations,
            seed=pair_seq,
            n_jobs=n_jobs,
        )

    return result


def run_from_config(config: RunConfig) -> AnalysisResult:
    """Load samples named by a RunConfig, run the analysis and save outputs."""
    from ..io import load_samples, save_results

    samples = load_samples(config.manifest_path, markers=config.markers)
    result = run_analysis(
        samples,
        n_partitions=config.n_partitions,
        cells_per_sample=config.cells_per_sample,
        max_iterations=config.max_iterations,
        init=config.init,
        n_init=config.n_init,
        n_components=config.n_components,
        n_permutations=config.n_permutations,
        metric=config.metric,
        feature=config.feature,
        condition_pairs=config.condition_pairs,
        reference_condition=config.reference_condition,
        seed=config.seed,
        n_jobs=config.n_jobs,
    )
    save_results(result, config.base_dir)
    return result
