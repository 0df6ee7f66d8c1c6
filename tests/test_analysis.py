"""
Tests for the end-to-end analysis and the command line entry point.
"""

import pytest
import json
import numpy as np
import pandas as pd
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from eurocluster.analysis import Analysis
from eurocluster.components.config import Config, ConfigManager
from eurocluster.math.named_matrix import NamedMatrix
from eurocluster.__main__ import main, parse_args, build_overrides


COLUMNS = ['Agr', 'Man', 'Fin', 'SPS']


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    for name in ('KMEANS_K', 'KMEANS_RESTARTS', 'SELECTION_K_MIN', 'SELECTION_K_MAX',
                 'GAP_REFS', 'LABEL_COLUMN', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    ConfigManager.reset()
    yield
    ConfigManager.reset()


@pytest.fixture
def countries():
    """Three groups of synthetic countries with distinct industry mixes."""
    rng = np.random.RandomState(4)
    profiles = {
        'agrarian': [25.0, 20.0, 2.0, 15.0],
        'industrial': [5.0, 35.0, 5.0, 20.0],
        'services': [3.0, 20.0, 9.0, 35.0]
    }
    rows = []
    names = []
    for group, profile in profiles.items():
        for i in range(6):
            rows.append(np.array(profile) + rng.randn(4) * 0.8)
            names.append(f"{group}-{i}")
    return NamedMatrix(np.array(rows), names, COLUMNS)


@pytest.fixture
def small_config():
    return Config({
        'kmeans': {'restarts': 5, 'seed': 0},
        'selection': {'k-min': 1, 'k-max': 5, 'gap-refs': 8, 'gap-seed': 1}
    })


def partition_of(assignments, prefix):
    return {label for name, label in assignments.items() if name.startswith(prefix)}


class TestAnalysis:
    """Tests for the Analysis class."""

    def test_run_finds_groups(self, countries, small_config):
        """Test that the three country profiles are recovered."""
        analysis = Analysis(countries, small_config).run()

        assert analysis.k == 3
        assignments = analysis.result.assignments_by_label()
        groups = [partition_of(assignments, p) for p in ('agrarian', 'industrial', 'services')]
        assert all(len(g) == 1 for g in groups)
        assert len(set.union(*groups)) == 3

    def test_configured_k(self, countries, small_config):
        """Test that a configured k overrides the recommendation."""
        small_config.set('kmeans.k', 2)

        analysis = Analysis(countries, small_config).run()

        assert analysis.k == 2
        assert analysis.result.k == 2
        assert sorted(analysis.scan_result) == [1, 2, 3, 4, 5]

    def test_centroid_frame_original_units(self, countries, small_config):
        """Test centroids reported in original units."""
        analysis = Analysis(countries, small_config).run()

        centers = analysis.centroid_frame()
        assert list(centers.columns) == COLUMNS
        assert list(centers.index) == [1, 2, 3]

        frame = pd.DataFrame(countries.values, index=countries.rownames(), columns=COLUMNS)
        labels = analysis.assignment_frame()['cluster']
        assert np.allclose(centers.values, frame.groupby(labels).mean().loc[[1, 2, 3]].values)

    def test_centroid_frame_scaled(self, countries, small_config):
        """Test centroids reported in standardized units."""
        analysis = Analysis(countries, small_config).run()

        assert np.allclose(analysis.centroid_frame(scaled=True).values, analysis.result.centroids)

    def test_to_dict_and_save(self, countries, small_config, tmp_path):
        """Test serialization to JSON."""
        analysis = Analysis(countries, small_config).run()

        data = analysis.to_dict()
        assert data['summary']['k'] == 3
        assert set(data['assignments']) == set(countries.rownames())
        assert sum(data['cluster_sizes'].values()) == 18
        assert set(data['diagnostics']) == {1, 2, 3, 4, 5}
        assert data['recommendation']['gap'] == 3

        path = tmp_path / 'result.json'
        analysis.save(str(path))
        loaded = json.loads(path.read_text())
        assert loaded['summary']['n_rows'] == 18
        assert set(loaded['centroids']) == {'1', '2', '3'}

    def test_not_run(self, countries, small_config):
        """Test that results are unavailable before running."""
        with pytest.raises(RuntimeError):
            Analysis(countries, small_config).to_dict()


class TestMain:
    """Tests for the command line entry point."""

    def test_build_overrides(self):
        """Test mapping arguments to configuration overrides."""
        args = parse_args(['data.csv', '--k', '3', '--restarts', '4', '--k-max', '6'])

        overrides = build_overrides(args)

        assert overrides == {'kmeans': {'k': 3, 'restarts': 4}, 'selection': {'k-max': 6}}

    def test_main(self, countries, tmp_path, capsys):
        """Test a full command line run."""
        frame = pd.DataFrame(countries.values, columns=COLUMNS)
        frame.insert(0, 'Country', countries.rownames())
        input_path = tmp_path / 'europe.csv'
        frame.to_csv(input_path, index=False)
        output_path = tmp_path / 'out.json'

        code = main([str(input_path), '--k-max', '4', '--restarts', '3',
                     '--gap-refs', '4', '--output', str(output_path)])

        assert code == 0
        out = capsys.readouterr().out
        assert 'Diagnostics by k:' in out
        assert 'agrarian-0' in out
        assert json.loads(output_path.read_text())['summary']['n_rows'] == 18
