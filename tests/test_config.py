"""Tests for run configuration loading."""

from pathlib import Path

import pytest
import yaml

from cytof_fr.run.config import RunConfig


def _minimal():
    return {
        'run_name': 'stim_vs_unstim',
        'input': {'manifest': 'data/manifest.csv'},
        'output': {'base_dir': 'results/stim_vs_unstim'},
        'steps': {},
    }


def _write(tmp_path, data):
    path = tmp_path / 'run.yaml'
    with open(path, 'w') as f:
        yaml.safe_dump(data, f)
    return path


class TestRunConfig:
    """Tests for RunConfig."""

    def test_from_yaml(self, tmp_path):
        """Test values are read from a YAML file."""
        data = _minimal()
        data['seed'] = 7
        data['input']['markers'] = ['CD3', 'CD4']
        data['steps'] = {
            'partition': {'n_partitions': 50, 'cells_per_sample': 100, 'init': 'random'},
            'embedding': {'n_components': 3},
            'test': {'n_permutations': 999, 'metric': 'cityblock', 'feature': 'counts',
                     'condition_pairs': [['unstim', 'IFNa'], ['unstim', 'IL2']], 'n_jobs': 2},
        }

        config = RunConfig.from_yaml(_write(tmp_path, data))

        assert config.run_name == 'stim_vs_unstim'
        assert config.seed == 7
        assert config.manifest_path == Path('data/manifest.csv')
        assert config.markers == ['CD3', 'CD4']
        assert config.n_partitions == 50
        assert config.cells_per_sample == 100
        assert config.init == 'random'
        assert config.n_components == 3
        assert config.n_permutations == 999
        assert config.metric == 'cityblock'
        assert config.feature == 'counts'
        assert config.condition_pairs == [('unstim', 'IFNa'), ('unstim', 'IL2')]
        assert config.reference_condition is None
        assert config.n_jobs == 2

    def test_defaults(self):
        """Test defaults when steps are left empty."""
        config = RunConfig(_minimal())

        assert config.seed == 0
        assert config.markers is None
        assert config.n_partitions == 200
        assert config.cells_per_sample == 500
        assert config.max_iterations == 100
        assert config.init == 'random'
        assert config.n_init == 'auto'
        assert config.n_components == 2
        assert config.n_permutations == 2000
        assert config.metric == 'euclidean'
        assert config.feature == 'proportions'
        assert config.condition_pairs is None
        assert config.n_jobs == 1
        assert config.log_file == Path('results/stim_vs_unstim/stim_vs_unstim.log')

    @pytest.mark.parametrize('section', ['run_name', 'input', 'output', 'steps'])
    def test_missing_section(self, section):
        """Test each required section is enforced."""
        data = _minimal()
        del data[section]

        with pytest.raises(ValueError, match=section):
            RunConfig(data)

    def test_missing_manifest(self):
        """Test input.manifest is required."""
        data = _minimal()
        data['input'] = {}

        with pytest.raises(ValueError, match='input.manifest'):
            RunConfig(data)

    def test_missing_base_dir(self):
        """Test output.base_dir is required."""
        data = _minimal()
        data['output'] = None

        with pytest.raises(ValueError, match='output.base_dir'):
            RunConfig(data)

    @pytest.mark.parametrize('step,key,value', [
        ('partition', 'n_partitions', 0),
        ('partition', 'cells_per_sample', -5),
        ('partition', 'max_iterations', 'ten'),
        ('test', 'n_permutations', 0),
        ('partition', 'init', 'forgy'),
        ('partition', 'n_init', 0),
        ('partition', 'n_init', 'many'),
        ('test', 'feature', 'log_counts'),
    ])
    def test_invalid_values(self, step, key, value):
        """Test out-of-range parameters are rejected."""
        data = _minimal()
        data['steps'] = {step: {key: value}}

        with pytest.raises(ValueError):
            RunConfig(data)

    def test_pairs_and_reference_exclusive(self):
        """Test explicit pairs and a reference condition cannot both be set."""
        data = _minimal()
        data['steps'] = {'test': {'condition_pairs': [['a', 'b']], 'reference_condition': 'a'}}

        with pytest.raises(ValueError, match='not both'):
            RunConfig(data)

    def test_numeric_conditions_as_text(self, tmp_path):
        """Test condition names YAML reads as numbers come back as strings."""
        data = _minimal()
        data['steps'] = {'test': {'condition_pairs': [[0, 10], [0, 1.5]]}}
        path = tmp_path / 'run.yaml'
        path.write_text(yaml.safe_dump(data))
        assert RunConfig.from_yaml(path).condition_pairs == [('0', '10'), ('0', '1.5')]

        data['steps'] = {'test': {'reference_condition': 0}}
        path.write_text(yaml.safe_dump(data))
        assert RunConfig.from_yaml(path).reference_condition == '0'


    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            RunConfig.from_yaml(tmp_path / 'absent.yaml')

    def test_not_a_mapping(self, tmp_path):
        """Test a YAML list is rejected."""
        path = tmp_path / 'run.yaml'
        path.write_text('- a\n- b\n')

        with pytest.raises(ValueError, match='mapping'):
            RunConfig.from_yaml(path)
