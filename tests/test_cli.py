"""
CLI tests using click's CliRunner.

Git is never invoked: connectivity and mirror synchronization are patched
on RepositorySynchronizer, and mirrors are pre-built under the working
directory.
"""

import json
import os
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from taskaudit.cli import cli
from taskaudit.database import Database, add_repo, get_all_urls, get_credentials, set_credentials
from taskaudit.domain import Credentials, RepositoryRef
from taskaudit.errors import BranchNotFound, GitConnectionError
from taskaudit.exit_codes import (
    CONFIG_ERROR,
    DATA_ERROR,
    GENERAL_ERROR,
    NETWORK_ERROR,
    NO_REPOS_FOUND,
    NON_COMPLIANT,
    PARTIAL_SUCCESS,
)
from taskaudit.services.synchronizer import (
    BRANCH_FALLBACK,
    MirrorState,
    RepositorySynchronizer,
    SyncOutcome,
)

API = "https://h.example/org/api"
WEB = "https://h.example/org/web"


@pytest.fixture
def workdir(tmp_path):
    return tmp_path


@pytest.fixture
def run(workdir):
    runner = CliRunner()
    env = {k: None for k in os.environ if k.startswith('TASKAUDIT_')}
    env['HOME'] = str(workdir)

    def invoke(*args):
        return runner.invoke(cli, ['--workdir', str(workdir)] + list(args), env=env)

    return invoke


@pytest.fixture
def db_path(workdir):
    return workdir / 'taskaudit.db'


def seed(db_path, urls=(), creds=None):
    with Database(db_path=db_path) as db:
        for url in urls:
            add_repo(db, url)
        if creds:
            set_credentials(db, creds)


def write_pipeline(workdir, url, content):
    path = RepositoryRef(url).mirror_path(workdir) / "azure-pipelines.yml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def fake_ensure_ready(broken=()):
    def ensure_ready(self, ref, creds, mode=None):
        if ref.name in broken:
            raise BranchNotFound(ref.name, BRANCH_FALLBACK)
        return SyncOutcome(ref, self.mirror_path(ref), MirrorState.READY, "present")
    return ensure_ready


class TestCredsCommand:

    def test_set(self, run, db_path):
        result = run('creds', 'set', 'me:tok')
        assert result.exit_code == 0, result.output
        assert "Git credentials updated successfully" in result.output
        with Database(db_path=db_path) as db:
            assert get_credentials(db) == Credentials('me', 'tok')

    def test_set_invalid(self, run):
        result = run('creds', 'set', 'no-colon')
        assert result.exit_code == CONFIG_ERROR


class TestRepoCommands:

    def test_list_empty(self, run):
        result = run('repo', 'list')
        assert result.exit_code == 0
        assert "No repositories found." in result.output

    def test_add_without_credentials(self, run):
        result = run('repo', 'add', API)
        assert result.exit_code == CONFIG_ERROR

    def test_add(self, run, db_path):
        seed(db_path, creds=Credentials('me', 'tok'))
        with patch.object(RepositorySynchronizer, 'test_connection', autospec=True), \
                patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                             side_effect=fake_ensure_ready()):
            result = run('repo', 'add', API)

        assert result.exit_code == 0, result.output
        assert "Added repository" in result.output
        with Database(db_path=db_path) as db:
            assert get_all_urls(db) == [API]

    def test_add_unreachable(self, run, db_path):
        seed(db_path, creds=Credentials('me', 'tok'))

        def unreachable(self, ref, creds):
            raise GitConnectionError(ref.name, "failed to connect", "fatal: Authentication failed")

        with patch.object(RepositorySynchronizer, 'test_connection', autospec=True,
                          side_effect=unreachable):
            result = run('repo', 'add', API)

        assert result.exit_code == NETWORK_ERROR
        with Database(db_path=db_path) as db:
            assert get_all_urls(db) == []

    def test_add_many_partial(self, run, db_path):
        seed(db_path, creds=Credentials('me', 'tok'))
        with patch.object(RepositorySynchronizer, 'test_connection', autospec=True), \
                patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                             side_effect=fake_ensure_ready(broken={'web'})):
            result = run('repo', 'add-many', f"{API}, {WEB}")

        assert result.exit_code == PARTIAL_SUCCESS
        with Database(db_path=db_path) as db:
            assert get_all_urls(db) == [API]

    def test_delete(self, run, db_path):
        seed(db_path, urls=[API])
        result = run('repo', 'delete', API)
        assert result.exit_code == 0
        assert run('repo', 'delete', API).exit_code == GENERAL_ERROR

    def test_list_json(self, run, db_path):
        seed(db_path, urls=[API, WEB])
        result = run('repo', 'list', '--json')
        assert result.exit_code == 0
        rows = [json.loads(line) for line in result.output.splitlines()]
        assert rows == [{'url': API, 'name': 'api'}, {'url': WEB, 'name': 'web'}]

    def test_sync(self, run, db_path):
        seed(db_path, urls=[API, WEB], creds=Credentials('me', 'tok'))
        with patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                          side_effect=fake_ensure_ready(broken={'web'})):
            result = run('repo', 'sync', '--json')

        assert result.exit_code == PARTIAL_SUCCESS
        rows = [json.loads(line) for line in result.output.splitlines() if line.startswith('{')]
        by_name = {row.get('name'): row for row in rows if 'name' in row}
        assert by_name['api']['status'] == 'success'
        assert by_name['web']['status'] == 'failed'
        summary = [row for row in rows if row.get('type') == 'summary']
        assert summary[0]['successful'] == 1
        assert summary[0]['failed'] == 1

    def test_pipelines(self, run, db_path, workdir):
        seed(db_path, urls=[API], creds=Credentials('me', 'tok'))
        write_pipeline(workdir, API, "- task: CopyFiles@1\n")
        with patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                          side_effect=fake_ensure_ready()):
            result = run('repo', 'pipelines', '--no-update')
        assert result.exit_code == 0, result.output
        assert "azure-pipelines.yml" in result.output


class TestStateCommands:

    def test_add_and_list(self, run):
        assert run('state', 'add', 'CopyFiles', '1').exit_code == 0
        result = run('state', 'list')
        assert result.exit_code == 0
        assert "Valid states for copyfiles:" in result.output
        assert "- @1" in result.output

    def test_add_gitversion(self, run):
        result = run('state', 'add', 'gitversion', 'setup:3,execute:3,spec:6.0.3')
        assert result.exit_code == 0, result.output
        result = run('state', 'list', 'gitversion')
        assert "setup@3, execute@3, spec@6.0.3" in result.output

    def test_add_invalid_gitversion(self, run):
        result = run('state', 'add', 'gitversion', 'setup:3,execute:3')
        assert result.exit_code == DATA_ERROR

    def test_delete(self, run):
        run('state', 'add', 'copyfiles', '1')
        assert run('state', 'delete', 'copyfiles', '1.0.0').exit_code == 0
        assert run('state', 'delete', 'copyfiles', '1').exit_code == GENERAL_ERROR

    def test_task_state_file_is_merged(self, run, workdir):
        (workdir / 'taskauditconfig.yml').write_text(
            "task_states:\n  other_tasks:\n    bash: ['3']\n"
        )
        result = run('state', 'list', 'bash')
        assert "- @3" in result.output

    def test_broken_task_state_file(self, run, workdir):
        (workdir / 'states.yml').write_text("task_states: [unclosed\n")
        result = run('--config', str(workdir / 'states.yml'), 'state', 'list')
        assert result.exit_code == CONFIG_ERROR


class TestCheckCommand:

    def test_no_repositories(self, run):
        assert run('check').exit_code == NO_REPOS_FOUND

    def test_missing_credentials(self, run, db_path):
        seed(db_path, urls=[API])
        assert run('check').exit_code == CONFIG_ERROR

    def test_markdown_report(self, run, db_path, workdir):
        seed(db_path, urls=[API], creds=Credentials('me', 'tok'))
        write_pipeline(workdir, API, "- task: CopyFiles@1\n")
        run('state', 'add', 'copyfiles', '1')

        with patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                          side_effect=fake_ensure_ready()):
            result = run('check', '--markdown', '--report-path', 'out/r.md')

        assert result.exit_code == 0, result.output
        report = (workdir / 'out_r.md').read_text()
        assert "# Azure Pipeline Tasks Analysis" in report
        assert "#### Version 1" in report

    def test_strict_non_compliant(self, run, db_path, workdir):
        seed(db_path, urls=[API], creds=Credentials('me', 'tok'))
        write_pipeline(workdir, API, "- task: CopyFiles@2\n")
        run('state', 'add', 'copyfiles', '1')

        with patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                          side_effect=fake_ensure_ready()):
            assert run('check').exit_code == 0
            assert run('check', '--strict').exit_code == NON_COMPLIANT

    def test_json_output(self, run, db_path, workdir):
        seed(db_path, urls=[API], creds=Credentials('me', 'tok'))
        write_pipeline(workdir, API, "- task: CopyFiles@2\n")
        run('state', 'add', 'copyfiles', '1')

        with patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                          side_effect=fake_ensure_ready()):
            result = run('check', '--json')

        assert result.exit_code == 0, result.output
        rows = [json.loads(line) for line in result.output.splitlines() if line.startswith('{')]
        assert rows[0]['task'] == 'CopyFiles'
        assert rows[0]['status'] == 'non_compliant'
        assert rows[0]['observed'] == ['2']
        assert rows[-1]['type'] == 'summary'
        assert rows[-1]['total'] == 1

    def test_partial_failure(self, run, db_path, workdir):
        seed(db_path, urls=[API, WEB], creds=Credentials('me', 'tok'))
        write_pipeline(workdir, API, "- task: CopyFiles@1\n")

        with patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                          side_effect=fake_ensure_ready(broken={'web'})):
            result = run('check')

        assert result.exit_code == PARTIAL_SUCCESS


class TestAnalyzeAndSearch:

    @pytest.fixture(autouse=True)
    def mirrors(self, db_path, workdir):
        seed(db_path, urls=[API], creds=Credentials('me', 'tok'))
        write_pipeline(workdir, API, "- task: CopyFiles@1\n- task: Bash@3\n")
        with patch.object(RepositorySynchronizer, 'ensure_ready', autospec=True,
                          side_effect=fake_ensure_ready()):
            yield

    def test_analyze(self, run):
        result = run('analyze')
        assert result.exit_code == 0, result.output
        assert "CopyFiles" in result.output

    def test_search(self, run):
        result = run('search', 'Bash')
        assert result.exit_code == 0, result.output
        assert "Bash@3" in result.output

    def test_search_no_match(self, run):
        result = run('search', 'Npm')
        assert result.exit_code == 0
        assert "No matches" in result.output

    def test_search_json(self, run):
        result = run('search', 'Bash', '--json')
        assert result.exit_code == 0, result.output
        hit = json.loads(result.output.splitlines()[0])
        assert hit['repo'] == 'api'
        assert hit['line'] == 2
        assert 'Bash@3' in hit['text']


class TestConfigCommands:

    def test_show(self, run, workdir):
        result = run('config', 'show')
        assert result.exit_code == 0, result.output
        config = json.loads(result.output)
        assert config['general']['working_directory'] == str(workdir)
        assert config['general']['report_path'] == 'report.md'

    def test_show_path(self, run, workdir):
        result = run('config', 'show', '--path')
        assert json.loads(result.output) == {
            'config_path': str(workdir / '.taskaudit' / 'config.json')
        }

    def test_init(self, run, workdir):
        result = run('config', 'init')
        assert result.exit_code == 0, result.output
        saved = json.loads((workdir / '.taskaudit' / 'config.json').read_text())
        assert saved['general']['walk_workers'] == 2
        assert run('config', 'init').exit_code == GENERAL_ERROR
        assert run('config', 'init', '--force').exit_code == 0
