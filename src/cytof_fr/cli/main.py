"""
Command-line interface for cytof_fr.

Commands:
    cytof-fr run --config run.yaml
    cytof-fr partition fit --manifest manifest.csv --output partition.npz --k 200
    cytof-fr features occupancy --manifest manifest.csv --partition partition.npz --output counts.csv
    cytof-fr test --counts counts.csv --manifest manifest.csv --classes unstim IFNa
"""

import functools
from pathlib import Path

import click

from ..errors import CytofFRError


def report_errors(func):
    """Turn analysis errors into a one-line CLI error with exit code 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (CytofFRError, FileNotFoundError) as e:
            raise click.ClickException(str(e)) from e
    return wrapper


@click.group()
@click.version_option(package_name='cytof_fr')
@click.option('--log-level', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level')
@click.option('--log-file', type=click.Path(), help='Also write logs to this file')
@click.pass_context
def cli(ctx, log_level, log_file):
    """cytof_fr - Partition featurization and Friedman-Rafsky tests for CyTOF samples."""
    from ..utils.log import setup_logger
    ctx.obj = {'log_level': log_level, 'log_file': log_file}
    setup_logger(log_level, log_file)


# ============================================================================
# Full pipeline
# ============================================================================

@cli.command('run')
@click.option('--config', '-c', 'config_path', required=True, type=click.Path(exists=True),
              help='Run configuration YAML')
@click.pass_context
@report_errors
def run(ctx, config_path):
    """Run the full analysis defined by a config file."""
    from ..run.config import RunConfig
    from ..analysis.pipeline import run_from_config
    from ..utils.log import setup_logger

    config = RunConfig.from_yaml(config_path)
    # --log-file on the command line takes precedence over output.log_file
    if ctx.obj['log_file'] is None:
        setup_logger(ctx.obj['log_level'], config.log_file)
    click.echo(f"Run: {config.run_name}")
    click.echo(f"  K={config.n_partitions}, cells/sample={config.cells_per_sample}, "
               f"permutations={config.n_permutations}")

    result = run_from_config(config)

    for (a, b), test in result.tests.items():
        click.echo(f"  {a} vs {b}: pure={test.observed_pure_count}/{test.n_edges}, "
                   f"p={test.p_value:.4g}")
    click.echo(f"✓ Saved results to {config.base_dir}")


# ============================================================================
# Partition Commands
# ============================================================================

@cli.group()
def partition():
    """Partition fitting commands."""
    pass


@partition.command('fit')
@click.option('--manifest', '-m', required=True, type=click.Path(exists=True),
              help='Sample manifest CSV')
@click.option('--output', '-o', 'output_file', required=True, type=click.Path(),
              help='Output partition .npz file')
@click.option('--k', '-k', 'n_partitions', default=200, show_default=True, help='Number of partitions')
@click.option('--cells-per-sample', default=500, show_default=True,
              help='Cells drawn from each sample for fitting')
@click.option('--max-iterations', default=100, show_default=True, help='Maximum k-means iterations')
@click.option('--init', default='random', show_default=True,
              type=click.Choice(['random', 'k-means++']), help='Centroid initialization')
@click.option('--n-init', default='auto', show_default=True,
              help="Number of initializations ('auto' = 10 for random, 1 for k-means++)")
@click.option('--seed', default=0, show_default=True, help='Random seed')
@report_errors
def partition_fit(manifest, output_file, n_partitions, cells_per_sample, max_iterations, init, n_init,
                  seed):
    """Fit a partition of receptor space from downsampled cells."""
    import numpy as np
    from ..io import load_samples
    from ..features.downsample import downsample_cells
    from ..clustering.kmeans import KMeansPartitioner

    if n_init != 'auto':
        if not n_init.isdigit() or int(n_init) < 1:
            raise click.BadParameter(f"expected a positive integer or 'auto', got '{n_init}'",
                                     param_hint='--n-init')
        n_init = int(n_init)

    samples = load_samples(manifest)
    rng = np.random.default_rng(seed)

    cells = downsample_cells(samples, cells_per_sample, rng)
    click.echo(f"Fitting K={n_partitions} on {cells.shape[0]} pooled cells")

    partitioner = KMeansPartitioner(
        n_partitions=n_partitions,
        max_iterations=max_iterations,
        init=init,
        random_state=rng,
        n_init=n_init,
    )
    fitted = partitioner.fit(cells)
    saved = fitted.save(output_file)

    status = "converged" if partitioner.converged_ else "did not converge"
    click.echo(f"K-means {status} after {partitioner.n_iter_} iterations")
    click.echo(f"Saved partition to {saved}")


# ============================================================================
# Features Commands
# ============================================================================

@cli.group()
def features():
    """Featurization commands."""
    pass


@features.command('occupancy')
@click.option('--manifest', '-m', required=True, type=click.Path(exists=True),
              help='Sample manifest CSV')
@click.option('--partition', '-p', 'partition_file', required=True, type=click.Path(exists=True),
              help='Partition .npz file')
@click.option('--output', '-o', 'output_file', required=True, type=click.Path(),
              help='Output occupancy counts CSV')
@report_errors
def features_occupancy(manifest, partition_file, output_file):
    """Count each sample's cells per partition."""
    from ..io import load_samples
    from ..clustering.base import Partition
    from ..features.occupancy import build_occupancy_table

    samples = load_samples(manifest)
    fitted = Partition.load(partition_file)

    table = build_occupancy_table(fitted, samples)
    table.to_csv(output_file)

    click.echo(f"Saved {len(table.sample_ids)} x {table.n_partitions} counts to {output_file}")


# ============================================================================
# Test Command
# ============================================================================

@cli.command('test')
@click.option('--counts', required=True, type=click.Path(exists=True),
              help='Occupancy counts CSV (from features occupancy)')
@click.option('--manifest', '-m', required=True, type=click.Path(exists=True),
              help='Sample manifest CSV with donor and condition columns')
@click.option('--classes', nargs=2, required=True, help='The two conditions to compare')
@click.option('--n-permutations', default=2000, show_default=True, help='Null distribution size')
@click.option('--metric', default='euclidean', show_default=True, help='Distance metric')
@click.option('--feature', default='proportions', show_default=True,
              type=click.Choice(['proportions', 'counts']), help='Occupancy representation')
@click.option('--seed', default=0, show_default=True, help='Random seed')
@click.option('--n-jobs', default=1, show_default=True, help='Parallel workers for permutations')
@click.option('--output', '-o', 'output_file', type=click.Path(),
              help='Optional .npz file for the null distribution')
@report_errors
def fr_test(counts, manifest, classes, n_permutations, metric, feature, seed, n_jobs, output_file):
    """Friedman-Rafsky test between two conditions."""
    import numpy as np
    import pandas as pd
    from ..features.occupancy import OccupancyTable
    from ..analysis.pipeline import compare_conditions

    table = OccupancyTable.from_csv(counts)
    meta = pd.read_csv(manifest, dtype=str).set_index('sample_id')
    missing = [sid for sid in table.sample_ids if sid not in meta.index]
    if missing:
        raise click.ClickException(f"Samples missing from manifest: {missing}")

    result = compare_conditions(
        table, meta['condition'].to_dict(), meta['donor'].to_dict(), tuple(classes),
        metric=metric,
        feature=feature,
        n_permutations=n_permutations,
        seed=seed,
        n_jobs=n_jobs,
    )

    click.echo(f"{classes[0]} vs {classes[1]}: {result.n_nodes} samples")
    click.echo(f"  pure edges: {result.observed_pure_count}/{result.n_edges}")
    click.echo(f"  null mean: {np.mean(result.null_distribution):.3f}")
    click.echo(f"  p-value: {result.p_value:.4g}")

    if output_file:
        output_file = Path(output_file)
        if output_file.suffix != '.npz':
            output_file = output_file.with_name(output_file.name + '.npz')
        output_file.parent.mkdir(parents=True, exist_ok=True)
        np.savez(output_file,
                 null_distribution=result.null_distribution,
                 observed_pure_count=result.observed_pure_count,
                 p_value=result.p_value)
        click.echo(f"Saved null distribution to {output_file}")


if __name__ == '__main__':
    cli()
