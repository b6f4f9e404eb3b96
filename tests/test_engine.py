"""
Test the workspace storage engine.

Verifies the snapshot, garbage collection and import entry points used
by the checkpoint manager and the import pipeline.
"""

import pytest
import tempfile
from pathlib import Path

from workspace_store import (
    ImportTransaction,
    InsufficientDiskSpaceError,
    ObjectNotFoundError,
    SnapshotRef,
    WorkspaceStorage,
)


class TestWorkspaceStorage:

    @pytest.fixture
    def storage(self):
        """Create a temporary workspace for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            engine = WorkspaceStorage(tmpdir)
            engine.initialize()
            yield engine

    def test_initialize_creates_object_store(self, storage):
        assert (storage.workspace_root / '.midlight' / 'objects').is_dir()

    def test_snapshot_round_trip(self, storage):
        ref = storage.store_snapshot('# Title\n\nBody', {'marks': [{'type': 'bold'}]})

        content, sidecar = storage.load_snapshot(ref)

        assert content == '# Title\n\nBody'
        assert sidecar == {'marks': [{'type': 'bold'}]}
        assert storage.has_snapshot(ref)

    def test_snapshot_stores_two_objects(self, storage):
        storage.store_snapshot('content', '{"version":1}')
        assert storage.objects.get_object_count() == 2

    def test_equal_sidecars_deduplicate(self, storage):
        first = storage.store_snapshot('v1', {'a': 1, 'b': 2})
        second = storage.store_snapshot('v2', {'b': 2, 'a': 1})

        assert first.sidecar_hash == second.sidecar_hash
        assert storage.objects.get_object_count() == 3

    def test_collect_garbage_keeps_retained_snapshots(self, storage):
        kept = storage.store_snapshot('kept version', {'n': 1})
        dropped = storage.store_snapshot('dropped version', {'n': 2})

        result = storage.collect_garbage([kept])

        assert result['freed_bytes'] > 0
        assert storage.has_snapshot(kept)
        assert not storage.has_snapshot(dropped)
        with pytest.raises(ObjectNotFoundError):
            storage.load_snapshot(dropped)

    def test_shared_objects_survive_if_any_ref_retains_them(self, storage):
        old = storage.store_snapshot('same text', {'rev': 1})
        new = storage.store_snapshot('same text', {'rev': 2})

        storage.collect_garbage([new])

        assert storage.objects.exists(old.content_hash)
        assert not storage.objects.exists(old.sidecar_hash)

    def test_collect_garbage_dry_run(self, storage):
        ref = storage.store_snapshot('orphan', {})

        result = storage.collect_garbage([], dry_run=True)

        assert set(ref.hashes()) <= result['garbage']
        assert storage.has_snapshot(ref)

    def test_begin_import_relative_destination(self, storage):
        transaction = storage.begin_import('Imported', estimated_bytes=1024)

        assert isinstance(transaction, ImportTransaction)
        assert transaction.destination_dir == storage.workspace_root / 'Imported'
        assert transaction.staging_dir.parent == storage.workspace_root

        transaction.stage_file('note.md', 'imported')
        transaction.commit()

        assert (storage.workspace_root / 'Imported' / 'note.md').read_text() == 'imported'

    def test_begin_import_refuses_without_space(self, storage):
        with pytest.raises(InsufficientDiskSpaceError) as exc_info:
            storage.begin_import('Huge', estimated_bytes=2 ** 60)

        assert 'need' in str(exc_info.value)
        assert not (storage.workspace_root / 'Huge').exists()
        assert not any(
            p.name.startswith('.import-staging-') for p in storage.workspace_root.iterdir()
        )

    def test_begin_import_as_context_manager(self, storage):
        with storage.begin_import(storage.workspace_root / 'Vault') as tx:
            tx.stage_file('a/b.md', 'nested')

        assert (storage.workspace_root / 'Vault' / 'a' / 'b.md').read_text() == 'nested'

    def test_statistics(self, storage):
        storage.store_snapshot('text', {})
        stats = storage.get_statistics()

        assert stats['total_objects'] == 2
        assert stats['total_size_bytes'] > 0
        assert stats['workspace_root'] == str(storage.workspace_root)


def test_snapshot_ref_hashes():
    ref = SnapshotRef(content_hash='a' * 64, sidecar_hash='b' * 64)
    assert ref.hashes() == ('a' * 64, 'b' * 64)


def test_engine_accepts_path(tmp_path):
    engine = WorkspaceStorage(Path(tmp_path))
    engine.initialize()
    assert engine.workspace_root == tmp_path.resolve()
