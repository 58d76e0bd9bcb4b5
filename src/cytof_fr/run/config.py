"""
Run configuration.

The RunConfig loads a YAML run definition:

    run_name: stim_vs_unstim
    seed: 0
    input:
      manifest: data/manifest.csv
      markers: [CD3, CD4, CD8, pSTAT1]     # optional
    output:
      base_dir: results/stim_vs_unstim
    steps:
      partition:
        n_partitions: 200
        cells_per_sample: 500
        max_iterations: 100
        init: random                         # or k-means++
        n_init: auto
      embedding:
        n_components: 2
      test:
        n_permutations: 2000
        metric: euclidean
        feature: proportions
        reference_condition: unstim          # or condition_pairs: [[a, b], ...]
        n_jobs: 1
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from ..clustering.kmeans import INIT_METHODS, resolve_n_init


class RunConfig:
    """
    Loads and validates a run configuration.

    Example:
        config = RunConfig.from_yaml('config/run.yaml')
        print(config.run_name)
        print(config.n_partitions)
    """

    def __init__(self, data: Dict[str, Any]):
        self._data = data
        self._validate()

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'RunConfig':
        """Load run config from YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Run config not found: {path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Run config must be a mapping: {path}")
        return cls(data)

    def _validate(self):
        """Validate required sections and parameter ranges."""
        required_sections = ['run_name', 'input', 'output', 'steps']
        for section in required_sections:
            if section not in self._data:
                raise ValueError(f"Missing required config section: '{section}'")

        if 'manifest' not in (self._data['input'] or {}):
            raise ValueError("Missing required config key: 'input.manifest'")
        if 'base_dir' not in (self._data['output'] or {}):
            raise ValueError("Missing required config key: 'output.base_dir'")

        for name in ('n_partitions', 'cells_per_sample', 'max_iterations', 'n_permutations'):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"'{name}' must be a positive integer, got {value!r}")

        if self.init not in INIT_METHODS:
            raise ValueError(f"Unknown init '{self.init}'. Must be one of {INIT_METHODS}")
        resolve_n_init(self.n_init, self.init)
        if self.feature not in ('proportions', 'counts'):
            raise ValueError(f"Unknown feature '{self.feature}'. Must be 'proportions' or 'counts'")
        if self.condition_pairs is not None and self.reference_condition is not None:
            raise ValueError("Set either 'condition_pairs' or 'reference_condition', not both")

    # --- Properties ---

    @property
    def run_name(self) -> str:
        return self._data['run_name']

    @property
    def seed(self) -> int:
        return int(self._data.get('seed', 0))

    # --- Input / output ---

    @property
    def manifest_path(self) -> Path:
        return Path(self._data['input']['manifest'])

    @property
    def markers(self) -> Optional[List[str]]:
        """Marker columns to keep (None = all)."""
        return self._data['input'].get('markers')

    @property
    def base_dir(self) -> Path:
        return Path(self._data['output']['base_dir'])

    @property
    def log_file(self) -> Path:
        return self.base_dir / self._data['output'].get('log_file', f"{self.run_name}.log")

    # --- Steps ---

    def _step(self, name: str) -> Dict[str, Any]:
        return (self._data['steps'] or {}).get(name) or {}

    @property
    def n_partitions(self) -> int:
        return self._step('partition').get('n_partitions', 200)

    @property
    def cells_per_sample(self) -> int:
        return self._step('partition').get('cells_per_sample', 500)

    @property
    def max_iterations(self) -> int:
        return self._step('partition').get('max_iterations', 100)

    @property
    def init(self) -> str:
        return self._step('partition').get('init', 'random')

    @property
    def n_init(self) -> Union[int, str]:
        return self._step('partition').get('n_init', 'auto')

    @property
    def n_components(self) -> int:
        return self._step('embedding').get('n_components', 2)

    @property
    def n_permutations(self) -> int:
        return self._step('test').get('n_permutations', 2000)

    @property
    def metric(self) -> str:
        return self._step('test').get('metric', 'euclidean')

    @property
    def feature(self) -> str:
        return self._step('test').get('feature', 'proportions')

    @property
    def condition_pairs(self) -> Optional[List[Tuple[str, str]]]:
        pairs = self._step('test').get('condition_pairs')
        if pairs is None:
            return None
        # Manifest conditions are read as strings; YAML may parse 0 or 1.5 as numbers
        return [tuple(str(c) for c in p) for p in pairs]

    @property
    def reference_condition(self) -> Optional[str]:
        reference = self._step('test').get('reference_condition')
        return None if reference is None else str(reference)

    @property
    def n_jobs(self) -> int:
        return self._step('test').get('n_jobs', 1)
