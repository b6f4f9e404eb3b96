"""
Test garbage collection safety.

Verifies that GC never deletes live objects and reports freed space.
"""

import pytest
import tempfile

from workspace_store import GarbageCollector, ObjectStore, select_garbage


class TestSelectGarbage:
    """Test the pure sweep-set computation."""

    def test_unreferenced_hashes_selected(self):
        assert select_garbage({'a', 'b', 'c'}, {'a'}) == {'b', 'c'}

    def test_all_live_selects_nothing(self):
        assert select_garbage(['a', 'b'], ['a', 'b']) == set()

    def test_empty_live_set_selects_everything(self):
        assert select_garbage(['a', 'b'], []) == {'a', 'b'}

    def test_live_hashes_not_stored_are_ignored(self):
        assert select_garbage(['a'], ['a', 'missing']) == set()


class TestGarbageCollector:
    """Test the collector against in-memory callables."""

    def test_deletes_only_garbage(self):
        stored = {'a': 10, 'b': 20, 'c': 30}
        collector = GarbageCollector(
            list_all_func=lambda: list(stored),
            delete_object_func=stored.pop,
        )

        result = collector.collect({'a'})

        assert sorted(result['deleted']) == ['b', 'c']
        assert result['freed_bytes'] == 50
        assert result['live'] == {'a'}
        assert list(stored) == ['a']

    def test_dry_run_deletes_nothing(self):
        stored = {'a': 10, 'b': 20}
        collector = GarbageCollector(lambda: list(stored), stored.pop)

        result = collector.collect(set(), dry_run=True)

        assert result['garbage'] == {'a', 'b'}
        assert result['deleted'] == []
        assert result['freed_bytes'] == 0
        assert len(stored) == 2

    def test_delete_failures_are_reported(self):
        def delete(obj_hash):
            if obj_hash == 'b':
                raise OSError('permission denied')
            return 5

        collector = GarbageCollector(lambda: ['a', 'b', 'c'], delete)
        result = collector.collect(set())

        assert sorted(result['deleted']) == ['a', 'c']
        assert result['freed_bytes'] == 10
        assert len(result['errors']) == 1
        assert 'b' in result['errors'][0]


class TestObjectStoreGC:
    """Test gc() on a real store."""

    @pytest.fixture
    def store(self):
        """Create a temporary store for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            object_store = ObjectStore(tmpdir)
            object_store.init()
            yield object_store

    def test_gc_removes_unreferenced_objects(self, store):
        h1 = store.write('checkpoint one')
        h2 = store.write('checkpoint two')

        freed = store.gc({h1})

        assert freed > 0
        assert store.exists(h1)
        assert not store.exists(h2)
        assert store.read(h1) == 'checkpoint one'
        assert store.get_object_count() == 1

    def test_freed_bytes_match_blob_sizes(self, store):
        h1 = store.write('keep')
        h2 = store.write('drop')
        blob_size = (store.objects_dir / h2[:2] / h2[2:]).stat().st_size

        assert store.gc({h1}) == blob_size

    def test_gc_all_referenced_frees_nothing(self, store):
        h1 = store.write('one')
        h2 = store.write('two')

        assert store.gc({h1, h2}) == 0
        assert store.get_object_count() == 2

    def test_gc_empty_store(self, store):
        assert store.gc(set()) == 0

    def test_gc_empty_live_set_clears_store(self, store):
        store.write('orphan one')
        store.write('orphan two')

        assert store.gc(set()) > 0
        assert store.get_object_count() == 0
        assert store.get_storage_size() == 0

    def test_gc_removes_empty_shard_directories(self, store):
        h = store.write('lonely')
        shard = store.objects_dir / h[:2]

        store.gc(set())

        assert not shard.exists()
        assert store.objects_dir.is_dir()

    def test_gc_keeps_shard_with_live_objects(self, store):
        live = store.write('live')
        store.write('dead')

        store.gc({live})

        assert (store.objects_dir / live[:2]).is_dir()

    def test_stats_reflect_collection_immediately(self, store):
        keep = store.write('keep me')
        store.write('collect me')
        size_before = store.get_storage_size()

        freed = store.gc({keep})

        assert store.get_storage_size() == size_before - freed
        assert store.get_all_hashes() == [keep]

    def test_collect_dry_run_reports_without_deleting(self, store):
        h = store.write('orphan')

        result = store.collect(set(), dry_run=True)

        assert h in result['garbage']
        assert store.exists(h)

    def test_gc_accepts_any_iterable(self, store):
        h1 = store.write('one')
        store.write('two')

        store.gc([h1])

        assert store.get_all_hashes() == [h1]
