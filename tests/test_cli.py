"""End-to-end tests for the typer CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from endstate.cli import main as cli_main
from endstate.cli.main import app
from endstate.drivers import DriverRegistry
from test_install import FakeDriver

runner = CliRunner()


@pytest.fixture(autouse=True)
def state_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    path = tmp_path / 'state'
    monkeypatch.delenv('LOAD_ENV_FILE', raising=False)
    monkeypatch.delenv('ENDSTATE_BACKUP_DIR', raising=False)
    monkeypatch.delenv('ENDSTATE_JOURNAL_DIR', raising=False)
    monkeypatch.delenv('ENDSTATE_DRIVER', raising=False)
    monkeypatch.setenv('ENDSTATE_STATE_DIR', str(path))
    return path


@pytest.fixture
def manifest(manifest_dir: Path, home: Path) -> Path:
    (manifest_dir / 'configs').mkdir()
    (manifest_dir / 'configs' / '.gitconfig').write_text('[user]\n\tname = me\n')
    path = manifest_dir / 'manifest.jsonc'
    path.write_text(
        json.dumps(
            {
                'name': 'test',
                'apps': ['Git.Git', {'id': 'Mozilla.Firefox'}],
                'restore': [{'type': 'copy', 'source': './configs/.gitconfig', 'target': str(home / '.gitconfig')}],
            }
        )
    )
    return path


def test_restore_requires_enable_flag(manifest: Path, home: Path) -> None:
    result = runner.invoke(app, ['restore', str(manifest)])

    assert result.exit_code == 1
    assert '--enable-restore' in result.output
    assert not (home / '.gitconfig').exists()


def test_restore_then_revert(manifest: Path, home: Path, state_dir: Path) -> None:
    restored = runner.invoke(app, ['restore', str(manifest), '--enable-restore'])

    assert restored.exit_code == 0, restored.output
    assert 'Restore success' in restored.output
    assert (home / '.gitconfig').is_file()
    assert len(list((state_dir / 'journals').glob('restore-*.json'))) == 1

    reverted = runner.invoke(app, ['revert'])

    assert reverted.exit_code == 0, reverted.output
    assert 'Revert success' in reverted.output
    assert not (home / '.gitconfig').exists()


def test_restore_dry_run_json(manifest: Path, home: Path, state_dir: Path) -> None:
    result = runner.invoke(app, ['restore', str(manifest), '--enable-restore', '--dry-run', '--json'])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data['dry_run'] is True
    assert data['restored'] == 1
    assert not (home / '.gitconfig').exists()
    assert not (state_dir / 'journals').exists()


def test_restore_partial_exit_code(manifest_dir: Path, manifest: Path, home: Path) -> None:
    data = json.loads(manifest.read_text())
    data['restore'].append({'type': 'copy', 'source': './configs/absent', 'target': str(home / 'absent')})
    manifest.write_text(json.dumps(data))

    result = runner.invoke(app, ['restore', str(manifest), '--enable-restore'])

    assert result.exit_code == 2
    assert 'Restore partial' in result.output


def test_restore_invalid_manifest(tmp_path: Path) -> None:
    path = tmp_path / 'bad.json'
    path.write_text('{"restore": [{"type": "symlink", "source": "a", "target": "/b"}]}')

    result = runner.invoke(app, ['restore', str(path), '--enable-restore'])

    assert result.exit_code == 1
    assert 'restore[0]' in result.output


def test_revert_without_journal() -> None:
    result = runner.invoke(app, ['revert'])

    assert result.exit_code == 0
    assert 'Nothing to revert' in result.output


def test_journal_list_and_show(manifest: Path) -> None:
    runner.invoke(app, ['restore', str(manifest), '--enable-restore'])

    listed = runner.invoke(app, ['journal', 'list'])
    assert listed.exit_code == 0
    run_id = listed.output.split()[0]

    shown = runner.invoke(app, ['journal', 'show', run_id[:13]])
    assert shown.exit_code == 0, shown.output
    journal = json.loads(shown.output)
    assert journal['runId'] == run_id
    assert journal['entries'][0]['action'] == 'restored'


def test_journal_show_without_journals() -> None:
    result = runner.invoke(app, ['journal', 'show'])
    assert result.exit_code == 1


def test_revert_and_show_corrupt_journal(state_dir: Path) -> None:
    journals = state_dir / 'journals'
    journals.mkdir(parents=True)
    (journals / 'restore-run-x.json').write_text('{not json')

    reverted = runner.invoke(app, ['revert'])
    shown = runner.invoke(app, ['journal', 'show'])
    listed = runner.invoke(app, ['journal', 'list'])

    assert reverted.exit_code == 1
    assert 'Corrupt restore journal' in reverted.output
    assert shown.exit_code == 1
    assert 'Corrupt restore journal' in shown.output
    assert listed.exit_code == 0
    assert 'restore-run-x.json  (unreadable' in listed.output


def test_install_from_manifest(manifest: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    driver = FakeDriver(installed=['Git.Git'])
    monkeypatch.setattr(
        cli_main, 'build_default_registry', lambda preferred=None: DriverRegistry([driver], preferred='fake')
    )

    result = runner.invoke(app, ['install', str(manifest), '-p', 'denied'])

    assert result.exit_code == 1
    assert 'Git.Git 1.0: already_installed' in result.output
    assert 'Mozilla.Firefox 2.0: success' in result.output
    assert 'denied: user_denied' in result.output
    assert driver.install_calls.count('Mozilla.Firefox') == 1


def test_install_nothing_to_do() -> None:
    result = runner.invoke(app, ['install'])
    assert result.exit_code == 0
    assert 'Nothing to install' in result.output


def test_drivers_lists_builtin_drivers() -> None:
    result = runner.invoke(app, ['drivers', '--driver', 'brew'])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert [line[2:].split()[0] for line in lines] == ['apt', 'brew', 'winget']
    assert any(line.startswith('* brew') for line in lines)
