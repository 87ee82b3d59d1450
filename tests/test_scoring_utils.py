import os
import unittest

import pytest

from scoring import utils
from scoring.utils import DEFAULT_SCORING, list_presets, load_preset, load_scoring_config


class TestScoringConfig(unittest.TestCase):
    def test_bundled_config_matches_defaults(self):
        cfg = load_scoring_config()
        self.assertEqual(cfg['quality']['max_score'], 60)
        self.assertEqual(cfg['confidence']['max_range_days'], 90)
        self.assertAlmostEqual(cfg['oscr']['confidence_weight'] + cfg['oscr']['quality_weight'], 1.0)

    def test_presets(self):
        self.assertIn('quality_focused', list_presets())
        cfg = load_preset('quality_focused')
        self.assertAlmostEqual(cfg['oscr']['quality_weight'], 0.9)
        # untouched sections keep their values
        self.assertEqual(cfg['quality']['merged_points'], 3)

    def test_unknown_preset(self):
        with self.assertRaises(ValueError):
            load_preset('does_not_exist')


def test_missing_file_yields_defaults(tmp_path):
    assert load_scoring_config(str(tmp_path / 'nope.yaml')) == DEFAULT_SCORING
    assert list_presets(str(tmp_path / 'nope.yaml')) == []


def test_overrides_and_unknown_keys(tmp_path):
    path = tmp_path / 'scoring.yaml'
    path.write_text("quality:\n  max_score: '50'\n  bogus: 1\nextra:\n  x: 1\n", encoding='utf-8')
    cfg = load_scoring_config(str(path))
    assert cfg['quality']['max_score'] == 50
    assert 'bogus' not in cfg['quality']
    assert 'extra' not in cfg


def test_malformed_file_falls_back(tmp_path):
    path = tmp_path / 'scoring.yaml'
    path.write_text("- just\n- a list\n", encoding='utf-8')
    assert load_scoring_config(str(path)) == DEFAULT_SCORING


def test_env_config_path(tmp_path, monkeypatch):
    path = tmp_path / 'custom.yaml'
    path.write_text("oscr:\n  confidence_weight: 0.5\n  quality_weight: 0.5\n", encoding='utf-8')
    monkeypatch.setenv('CONTRIB_SCORING_CONFIG', str(path))
    assert load_scoring_config()['oscr']['confidence_weight'] == 0.5


def test_pool_size_sources(monkeypatch):
    monkeypatch.setattr(utils, '_runtime_pool_size', None)
    monkeypatch.setenv('CONTRIB_POOL_SIZE', '3')
    assert utils.default_pool_size() == 3
    monkeypatch.delenv('CONTRIB_POOL_SIZE')
    assert utils.default_pool_size() == max(2, os.cpu_count() or 1)
    utils.configure_pool(5)
    assert utils.default_pool_size() == 5
    with pytest.raises(ValueError):
        utils.configure_pool(0)
