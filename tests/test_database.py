"""
Tests for taskaudit.database module.

Tests cover:
- Database connection management and schema creation
- Repository registry operations
- Credential storage
- Valid state storage
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from taskaudit.database.connection import Database, get_db_path
from taskaudit.database.credentials import get_credentials, obfuscate, reveal, set_credentials
from taskaudit.database.repository import add_repo, delete_repo, get_all_repos, get_all_urls
from taskaudit.database.schema import CURRENT_VERSION, get_schema_version
from taskaudit.database.states import (
    add_state,
    delete_state,
    get_all_tasks,
    get_registry,
    get_states,
    merge_states,
)
from taskaudit.domain import Credentials, GenericState, VersioningState


class DatabaseTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / 'test.db'

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def db(self):
        return Database(db_path=self.db_path)


class TestDatabaseConnection(DatabaseTestCase):
    """Tests for database connection management."""

    def test_get_db_path_env(self):
        with patch.dict(os.environ, {'TASKAUDIT_DB': '/tmp/custom.db'}):
            self.assertEqual(get_db_path(), Path('/tmp/custom.db'))

    def test_get_db_path_config(self):
        env = {k: v for k, v in os.environ.items() if k != 'TASKAUDIT_DB'}
        with patch.dict(os.environ, env, clear=True):
            config = {'database': {'path': '/tmp/from-config.db'}}
            self.assertEqual(get_db_path(config), Path('/tmp/from-config.db'))

    def test_get_db_path_default(self):
        env = {k: v for k, v in os.environ.items() if k != 'TASKAUDIT_DB'}
        with patch.dict(os.environ, env, clear=True):
            config = {'general': {'working_directory': self.temp_dir}, 'database': {'path': ''}}
            self.assertEqual(get_db_path(config), Path(self.temp_dir) / 'taskaudit.db')

    def test_schema_created(self):
        with self.db() as db:
            db.execute("SELECT name FROM sqlite_master WHERE type='table'")
            tables = {row['name'] for row in db.fetchall()}
            self.assertEqual(get_schema_version(db.conn), CURRENT_VERSION)
        self.assertTrue({'repositories', 'git_credentials', 'valid_states'} <= tables)

    def test_not_connected(self):
        with self.assertRaises(RuntimeError):
            Database(db_path=self.db_path).conn

    def test_failed_session_is_rolled_back(self):
        with self.assertRaises(ValueError):
            with self.db() as db:
                add_repo(db, 'https://h/org/a')
                raise ValueError("boom")
        with self.db() as db:
            self.assertEqual(get_all_urls(db), [])


class TestRepositories(DatabaseTestCase):

    def test_add_and_list(self):
        with self.db() as db:
            self.assertTrue(add_repo(db, 'https://h/org/b'))
            self.assertTrue(add_repo(db, 'https://h/org/a'))
            self.assertFalse(add_repo(db, 'https://h/org/b'))

        with self.db() as db:
            self.assertEqual(get_all_urls(db), ['https://h/org/b', 'https://h/org/a'])
            self.assertEqual([r.name for r in get_all_repos(db)], ['b', 'a'])

    def test_delete(self):
        with self.db() as db:
            add_repo(db, 'https://h/org/a')
            self.assertTrue(delete_repo(db, 'https://h/org/a'))
            self.assertFalse(delete_repo(db, 'https://h/org/a'))
            self.assertEqual(get_all_urls(db), [])


class TestCredentials(DatabaseTestCase):

    def test_none_by_default(self):
        with self.db() as db:
            self.assertIsNone(get_credentials(db))

    def test_round_trip(self):
        with self.db() as db:
            set_credentials(db, Credentials('me', 'tok3n'))
        with self.db() as db:
            self.assertEqual(get_credentials(db), Credentials('me', 'tok3n'))

    def test_token_not_stored_in_clear(self):
        with self.db() as db:
            set_credentials(db, Credentials('me', 'tok3n'))
            db.execute("SELECT token FROM git_credentials")
            stored = bytes(db.fetchone()['token'])
        self.assertNotEqual(stored, b'tok3n')
        self.assertEqual(reveal(stored), 'tok3n')

    def test_single_identity(self):
        with self.db() as db:
            set_credentials(db, Credentials('me', 'one'))
            set_credentials(db, Credentials('you', 'two'))
            db.execute("SELECT COUNT(*) AS n FROM git_credentials")
            self.assertEqual(db.fetchone()['n'], 1)
            self.assertEqual(get_credentials(db).username, 'you')

    def test_obfuscate(self):
        self.assertEqual(obfuscate('A'), bytes([0x41 ^ 0xFF]))


class TestValidStates(DatabaseTestCase):

    def test_task_names_are_case_insensitive(self):
        with self.db() as db:
            self.assertTrue(add_state(db, 'CopyFiles', GenericState('1')))
            self.assertEqual(get_states(db, 'COPYFILES'), [GenericState('1')])
            self.assertEqual(get_all_tasks(db), ['copyfiles'])

    def test_equivalent_state_not_duplicated(self):
        with self.db() as db:
            add_state(db, 'copyfiles', GenericState('1'))
            self.assertFalse(add_state(db, 'copyfiles', GenericState('1.0.0')))
            self.assertEqual(len(get_states(db, 'copyfiles')), 1)

    def test_versioning_states_share_one_key(self):
        with self.db() as db:
            add_state(db, 'gitversion/setup', VersioningState('3', '3', '6.0.3'))
            self.assertEqual(get_states(db, 'gitversion'), [VersioningState('3', '3', '6.0.3')])

    def test_wrong_family_rejected(self):
        with self.db() as db:
            with self.assertRaises(ValueError):
                add_state(db, 'GitVersion/Setup', GenericState('3'))
            with self.assertRaises(ValueError):
                add_state(db, 'copyfiles', VersioningState('3', '3', '6.0.3'))
            self.assertEqual(get_all_tasks(db), [])

    def test_delete_equivalent(self):
        with self.db() as db:
            add_state(db, 'copyfiles', GenericState('1'))
            add_state(db, 'copyfiles', GenericState('2'))
            self.assertTrue(delete_state(db, 'copyfiles', GenericState('1.0')))
            self.assertFalse(delete_state(db, 'copyfiles', GenericState('3')))
            self.assertEqual(get_states(db, 'copyfiles'), [GenericState('2')])

    def test_registry(self):
        with self.db() as db:
            add_state(db, 'gitversion', VersioningState('3', '3', '6.0.3'))
            add_state(db, 'copyfiles', GenericState('1'))
            registry = get_registry(db)
            self.assertEqual(list(registry), ['copyfiles', 'gitversion'])
            self.assertEqual(list(get_registry(db, 'CopyFiles')), ['copyfiles'])
            self.assertEqual(get_registry(db, 'bash'), {})

    def test_merge_states(self):
        states = {
            'gitversion': [VersioningState('3', '3', '6.0.3')],
            'copyfiles': [GenericState('1'), GenericState('2')],
        }
        with self.db() as db:
            self.assertEqual(merge_states(db, states), 3)
            self.assertEqual(merge_states(db, states), 0)
            self.assertEqual(len(get_states(db, 'copyfiles')), 2)


if __name__ == '__main__':
    unittest.main()
