"""
Garbage collection for unreferenced objects.

Implements a single-pass mark-and-sweep where the caller supplies the mark.
"""

import logging
from typing import Callable, Iterable, List, Set


logger = logging.getLogger(__name__)


def select_garbage(all_hashes: Iterable[str], live_hashes: Iterable[str]) -> Set[str]:
    """
    Compute the sweep set: every stored hash not in the live set.

    Pure function with no filesystem access. Hashes in the live set that
    are not stored are ignored.
    """
    return set(all_hashes) - set(live_hashes)


class GarbageCollector:
    """
    Garbage collector for the content-addressed object store.

    The mark phase belongs to the caller: it passes every hash still
    referenced by retained checkpoints. The sweep deletes the rest.

    Safety guarantees:
    - Never deletes a hash in the live set
    - No temporal coordination; the caller supplies a consistent live set
    """

    def __init__(
        self,
        list_all_func: Callable[[], List[str]],
        delete_object_func: Callable[[str], int],
    ):
        """
        Initialize garbage collector.

        list_all_func: returns list of all stored object hashes
        delete_object_func: deletes object by hash, returns bytes freed
        """
        self.list_all = list_all_func
        self.delete_object = delete_object_func

    def collect(self, live_hashes: Iterable[str], dry_run: bool = False) -> dict:
        """
        Run garbage collection.

        Args:
            live_hashes: hashes that must be kept
            dry_run: if True, only report what would be deleted

        Returns dict with:
            - live: set of stored hashes that were kept
            - garbage: set of hashes selected for deletion
            - deleted: list of deleted hashes (empty if dry_run)
            - freed_bytes: total on-disk size of deleted blobs
            - errors: list of error messages
        """
        live = set(live_hashes)
        stored = self.list_all()
        garbage = select_garbage(stored, live)

        result = {
            'live': set(stored) & live,
            'garbage': garbage,
            'deleted': [],
            'freed_bytes': 0,
            'errors': [],
        }

        if dry_run or not garbage:
            return result

        for obj_hash in sorted(garbage):
            try:
                freed = self.delete_object(obj_hash)
            except Exception as e:
                result['errors'].append(f"Failed to delete {obj_hash}: {e}")
                logger.warning("Failed to delete object %s: %s", obj_hash[:8], e)
                continue

            result['deleted'].append(obj_hash)
            result['freed_bytes'] += freed

        logger.info(
            "GC removed %d of %d objects (%d bytes freed)",
            len(result['deleted']), len(stored), result['freed_bytes'],
        )
        return result
