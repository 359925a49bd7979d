"""
Unit tests for taskaudit.config module
"""
import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import yaml

from taskaudit.config import (
    apply_env_overrides,
    get_default_config,
    get_working_dir,
    load_config,
    load_task_states,
    merge_configs,
    save_config,
)
from taskaudit.domain import GenericState, VersioningState
from taskaudit.exit_codes import CONFIG_ERROR, ConfigError


def clean_env(**extra):
    """Environment without TASKAUDIT_* variables."""
    env = {k: v for k, v in os.environ.items() if not k.startswith('TASKAUDIT_')}
    env.update(extra)
    return env


class TestConfigManagement(unittest.TestCase):
    """Test configuration management functionality"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.env = patch.dict(os.environ, clean_env(HOME=self.temp_dir), clear=True)
        self.env.start()

    def tearDown(self):
        self.env.stop()
        shutil.rmtree(self.temp_dir)

    def test_get_default_config(self):
        config = get_default_config()
        self.assertIn('general', config)
        self.assertIn('database', config)
        self.assertIn('logging', config)
        self.assertEqual(config['general']['max_concurrent_operations'], 0)
        self.assertEqual(config['general']['report_path'], 'report.md')

    def test_load_config_no_file(self):
        self.assertEqual(load_config(), get_default_config())

    def test_load_yaml_config_from_env_path(self):
        path = Path(self.temp_dir) / 'custom.yaml'
        path.write_text(yaml.safe_dump({'general': {'max_concurrent_operations': 3}}))
        with patch.dict(os.environ, {'TASKAUDIT_CONFIG': str(path)}):
            config = load_config()
        self.assertEqual(config['general']['max_concurrent_operations'], 3)
        self.assertEqual(config['general']['report_path'], 'report.md')

    def test_invalid_json_falls_back_to_defaults(self):
        config_dir = Path(self.temp_dir) / '.taskaudit'
        config_dir.mkdir()
        (config_dir / 'config.json').write_text('{"general": not json at all}')
        self.assertEqual(load_config(), get_default_config())

    def test_save_and_load(self):
        config = get_default_config()
        config['general']['working_directory'] = '/srv/audit'
        save_config(config)

        saved = Path(self.temp_dir) / '.taskaudit' / 'config.json'
        self.assertTrue(saved.exists())
        self.assertEqual(json.loads(saved.read_text())['general']['working_directory'], '/srv/audit')
        self.assertEqual(load_config()['general']['working_directory'], '/srv/audit')

    def test_env_overrides(self):
        with patch.dict(os.environ, {
            'TASKAUDIT_GENERAL_MAX_CONCURRENT_OPERATIONS': '8',
            'TASKAUDIT_LOGGING_LEVEL': 'DEBUG',
        }):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config['general']['max_concurrent_operations'], 8)
        self.assertEqual(config['logging']['level'], 'DEBUG')

    def test_env_overrides_keep_types(self):
        with patch.dict(os.environ, {
            'TASKAUDIT_GENERAL_WALK_WORKERS': 'many',
            'TASKAUDIT_DB': '/tmp/x.db',
            'TASKAUDIT_DATABASE_PATH': '/tmp/y.db',
        }):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config['general']['walk_workers'], 2)
        self.assertEqual(config['database']['path'], '/tmp/y.db')
        self.assertNotIn('db', config)

    def test_save_toml(self):
        path = Path(self.temp_dir) / 'settings.toml'
        path.write_text('[general]\nwalk_workers = 4\n')
        with patch.dict(os.environ, {'TASKAUDIT_CONFIG': str(path)}):
            self.assertEqual(load_config()['general']['walk_workers'], 4)
            config = get_default_config()
            config['general']['walk_workers'] = 6
            self.assertEqual(save_config(config), path)
            self.assertEqual(load_config()['general']['walk_workers'], 6)

    def test_merge_configs(self):
        merged = merge_configs(
            {'general': {'a': 1, 'b': 2}, 'other': 1},
            {'general': {'b': 3}, 'new': True},
        )
        self.assertEqual(merged, {'general': {'a': 1, 'b': 3}, 'other': 1, 'new': True})

    def test_working_dir(self):
        self.assertEqual(get_working_dir({'general': {'working_directory': '/srv/audit'}}), Path('/srv/audit'))
        self.assertEqual(get_working_dir({}), Path.cwd())


class TestTaskStates(unittest.TestCase):
    """Tests for the task state file."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = Path(self.temp_dir) / 'taskauditconfig.yml'

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_missing_file(self):
        self.assertEqual(load_task_states(self.path), {})

    def test_load(self):
        self.path.write_text(
            "task_states:\n"
            "  gitversion:\n"
            "    - setup_version: 3\n"
            "      execute_version: 3\n"
            "      spec_version: '6.0.3'\n"
            "  other_tasks:\n"
            "    CopyFiles: [1, '2']\n"
        )
        states = load_task_states(self.path)
        self.assertEqual(states['gitversion'], [VersioningState('3', '3', '6.0.3')])
        self.assertEqual(states['copyfiles'], [GenericState('1'), GenericState('2')])

    def test_empty_file(self):
        self.path.write_text("")
        self.assertEqual(load_task_states(self.path), {})

    def test_invalid_yaml(self):
        self.path.write_text("task_states: [unclosed\n")
        with self.assertRaises(ConfigError) as ctx:
            load_task_states(self.path)
        self.assertEqual(ctx.exception.exit_code, CONFIG_ERROR)

    def test_missing_field(self):
        self.path.write_text(
            "task_states:\n"
            "  gitversion:\n"
            "    - setup_version: 3\n"
        )
        with self.assertRaises(ConfigError):
            load_task_states(self.path)

    def test_versioning_task_under_other_tasks(self):
        self.path.write_text(
            "task_states:\n"
            "  other_tasks:\n"
            "    GitVersion/Setup: ['3']\n"
        )
        with self.assertRaises(ConfigError) as ctx:
            load_task_states(self.path)
        self.assertIn("gitversion", str(ctx.exception))

    def test_scalar_versions_rejected(self):
        self.path.write_text(
            "task_states:\n"
            "  other_tasks:\n"
            "    copyfiles: '12'\n"
        )
        with self.assertRaises(ConfigError):
            load_task_states(self.path)

    def test_gitversion_must_be_a_list(self):
        self.path.write_text(
            "task_states:\n"
            "  gitversion: {setup_version: 3, execute_version: 3, spec_version: '6.0.3'}\n"
        )
        with self.assertRaises(ConfigError):
            load_task_states(self.path)


if __name__ == '__main__':
    unittest.main()
