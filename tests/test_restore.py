"""Tests for the restore orchestrator: ordering, status, journaling, opt-in."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from endstate.exceptions import RestoreNotEnabledError
from endstate.services import JournalStore, RestoreService


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


@pytest.fixture
def sources(manifest_dir: Path) -> Path:
    configs = manifest_dir / 'configs'
    _write(configs / '.gitconfig', '[user]\n\tname = me\n')
    _write(configs / 'settings.json', '{"editor.fontSize": 14}')
    _write(configs / 'app.ini', '[core]\nfoo=1\n')
    _write(configs / 'hosts.txt', '10.0.0.1 nas\n')
    return configs


@pytest.fixture
def all_kinds(make_entry, home, sources):
    return [
        make_entry(type='copy', source='./configs/.gitconfig', target=str(home / '.gitconfig')),
        make_entry(type='merge-json', source='configs/settings.json', target=str(home / 'Code' / 'settings.json')),
        make_entry(type='merge-ini', source='configs/app.ini', target=str(home / 'app.ini')),
        make_entry(type='append', source='configs/hosts.txt', target=str(home / 'hosts')),
    ]


def test_restore_requires_opt_in(restore_service: RestoreService, all_kinds, manifest_path) -> None:
    with pytest.raises(RestoreNotEnabledError):
        restore_service.restore(all_kinds, manifest_path=manifest_path)


def test_restore_all_kinds_writes_journal(restore_service, journal_store: JournalStore, all_kinds, manifest_path, home) -> None:
    result = restore_service.restore(all_kinds, manifest_path=manifest_path, enabled=True)

    assert result.status == 'success'
    assert result.restored == 4
    assert [entry.kind for entry in result.journal.entries] == ['copy', 'merge-json', 'merge-ini', 'append']
    assert (home / '.gitconfig').is_file()
    assert json.loads((home / 'Code' / 'settings.json').read_text()) == {'editor.fontSize': 14}

    journal_path = Path(result.journal_path)
    assert journal_path == journal_store.path_for(result.run_id)
    loaded = journal_store.load(journal_path)
    assert loaded == result.journal
    assert loaded.manifest_dir == str(manifest_path.resolve().parent)


def test_restore_is_idempotent(restore_service, all_kinds, manifest_path) -> None:
    restore_service.restore(all_kinds, manifest_path=manifest_path, enabled=True)
    second = restore_service.restore(all_kinds, manifest_path=manifest_path, enabled=True)

    assert second.status == 'success'
    assert second.skipped_up_to_date == 4
    assert all(entry.action == 'skipped_up_to_date' for entry in second.journal.entries)
    assert not any(entry.backup_created for entry in second.journal.entries)


def test_dry_run_writes_nothing(restore_service, journal_store, all_kinds, manifest_path, home, backup_root) -> None:
    result = restore_service.restore(all_kinds, manifest_path=manifest_path, enabled=True, dry_run=True)

    assert result.dry_run is True
    assert result.restored == 4
    assert result.journal_path is None
    assert journal_store.list_journals() == []
    assert list(home.iterdir()) == []
    assert not backup_root.exists()


def test_journal_written_when_every_entry_fails(restore_service, journal_store, make_entry, manifest_path) -> None:
    entries = [
        make_entry(type='copy', source='configs/missing', target='%UNSET_VARIABLE%/x'),
        make_entry(type='copy', source='configs/missing', target='relative/target'),
    ]

    result = restore_service.restore(entries, manifest_path=manifest_path, enabled=True)

    assert result.status == 'failed'
    assert result.failed == 2
    assert 'Unresolved token' in result.journal.entries[0].error
    assert result.journal.entries[0].target_path is None
    assert journal_store.list_journals() == [Path(result.journal_path)]


def test_empty_manifest_writes_no_journal(restore_service, journal_store, manifest_path) -> None:
    result = restore_service.restore([], manifest_path=manifest_path, enabled=True)

    assert result.status == 'success'
    assert result.journal_path is None
    assert journal_store.list_journals() == []


def test_missing_required_source_is_partial(restore_service, make_entry, sources, manifest_path, home) -> None:
    entries = [
        make_entry(type='copy', source='configs/.gitconfig', target=str(home / '.gitconfig')),
        make_entry(type='copy', source='configs/absent.conf', target=str(home / 'absent.conf')),
    ]

    result = restore_service.restore(entries, manifest_path=manifest_path, enabled=True)

    assert result.status == 'partial'
    assert result.skipped_missing_source == 1
    assert result.missing_required == 1
    missing = result.journal.entries[1]
    assert missing.action == 'skipped_missing_source'
    assert 'absent.conf' in missing.error
    assert missing.resolved_source_path is None
    assert missing.target_path == str(home / 'absent.conf')


def test_missing_optional_source_is_not_an_error(restore_service, make_entry, manifest_path, home) -> None:
    entries = [make_entry(type='copy', source='configs/absent.conf', target=str(home / 'absent.conf'), optional=True)]

    result = restore_service.restore(entries, manifest_path=manifest_path, enabled=True)

    assert result.status == 'success'
    assert result.missing_required == 0
    assert result.journal.entries[0].error is None


def test_export_root_takes_precedence(restore_service, make_entry, sources, manifest_path, home, tmp_path) -> None:
    export_root = tmp_path / 'export'
    _write(export_root / 'configs' / '.gitconfig', '[user]\n\tname = exported\n')
    entries = [
        make_entry(type='copy', source='configs/.gitconfig', target=str(home / '.gitconfig')),
        make_entry(type='append', source='configs/hosts.txt', target=str(home / 'hosts')),
    ]

    result = restore_service.restore(entries, manifest_path=manifest_path, export_root=export_root, enabled=True)

    assert result.status == 'success'
    assert (home / '.gitconfig').read_text() == '[user]\n\tname = exported\n'
    assert result.journal.entries[0].resolved_source_path == str((export_root / 'configs' / '.gitconfig').resolve())
    # Not in the export root: falls back to the manifest directory
    assert result.journal.entries[1].resolved_source_path == str((sources / 'hosts.txt').resolve())
    assert result.journal.export_root == str(export_root.resolve())


def test_target_tokens_are_expanded(backup_root, journal_store, make_entry, sources, manifest_path, tmp_path) -> None:
    appdata = tmp_path / 'AppData' / 'Roaming'
    service = RestoreService(backup_root=backup_root, journal_store=journal_store, env={'APPDATA': str(appdata)})
    entries = [make_entry(type='merge-json', source='configs/settings.json', target='%APPDATA%/Code/User/settings.json')]

    result = service.restore(entries, manifest_path=manifest_path, enabled=True)

    assert result.journal.entries[0].target_path == str(appdata / 'Code' / 'User' / 'settings.json')
    assert (appdata / 'Code' / 'User' / 'settings.json').is_file()


def test_sensitive_target_warns(restore_service, make_entry, sources, manifest_path, home) -> None:
    entries = [make_entry(type='copy', source='configs/.gitconfig', target=str(home / '.ssh' / 'config'))]

    result = restore_service.restore(entries, manifest_path=manifest_path, enabled=True)

    record = result.journal.entries[0]
    assert record.action == 'restored'
    assert any('.ssh' in warning for warning in record.warnings)
    assert result.warnings >= 1


def test_directory_source_for_merge_fails(restore_service, make_entry, manifest_dir, manifest_path, home) -> None:
    (manifest_dir / 'configs' / 'dir').mkdir(parents=True)
    entries = [make_entry(type='merge-json', source='configs/dir', target=str(home / 'x.json'))]

    result = restore_service.restore(entries, manifest_path=manifest_path, enabled=True)

    assert result.journal.entries[0].action == 'failed'
    assert 'directory' in result.journal.entries[0].error


def test_failure_does_not_stop_later_entries(restore_service, make_entry, sources, manifest_path, home) -> None:
    bad_target = home / 'settings.json'
    bad_target.write_text('{broken')
    entries = [
        make_entry(type='merge-json', source='configs/settings.json', target=str(bad_target), onConflict='overwrite'),
        make_entry(type='copy', source='configs/.gitconfig', target=str(home / '.gitconfig')),
    ]

    result = restore_service.restore(entries, manifest_path=manifest_path, enabled=True)

    assert result.status == 'partial'
    assert [entry.action for entry in result.journal.entries] == ['failed', 'restored']


def test_undecodable_source_fails_only_its_entry(
    restore_service, journal_store, make_entry, manifest_dir, manifest_path, home
) -> None:
    _write(manifest_dir / 'configs' / 'a.txt', 'first\n')
    (manifest_dir / 'configs' / 'bad.ini').write_bytes(b'\xff\xfe[core]\r\n')
    _write(manifest_dir / 'configs' / 'c.txt', 'third\n')
    entries = [
        make_entry(type='copy', source='configs/a.txt', target=str(home / 'a.txt')),
        make_entry(type='merge-ini', source='configs/bad.ini', target=str(home / 'app.ini')),
        make_entry(type='copy', source='configs/c.txt', target=str(home / 'c.txt')),
    ]

    result = restore_service.restore(entries, manifest_path=manifest_path, enabled=True)

    assert [entry.action for entry in result.journal.entries] == ['restored', 'failed', 'restored']
    assert 'not valid UTF-8' in result.journal.entries[1].error
    assert result.status == 'partial'
    assert not (home / 'app.ini').exists()
    assert (home / 'c.txt').read_text() == 'third\n'
    assert journal_store.latest() == Path(result.journal_path)
