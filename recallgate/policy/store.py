"""File-backed collection metadata store."""

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable

from loguru import logger

from recallgate.errors import PolicyStoreError
from recallgate.policy.types import CollectionPolicy, default_policy_for

STORE_VERSION = 1


class PolicyStore:
    """Persists one `CollectionPolicy` per collection id in a JSON file.

    Saves replace the whole policy object and the whole file (write to a
    temp file, then rename), so a crash never leaves a half-written policy.
    """

    def __init__(self, store_path: Path):
        self.store_path = Path(store_path)
        self._records: dict[str, dict] | None = None

    def _load_store(self) -> dict[str, dict]:
        """Load policy records from disk."""
        if self._records is not None:
            return self._records

        self._records = {}
        if not self.store_path.exists():
            return self._records

        try:
            data = json.loads(self.store_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load policy store {self.store_path}: {e}")
            return self._records

        collections = data.get("collections") if isinstance(data, dict) else None
        if not isinstance(collections, dict):
            logger.warning(f"Policy store {self.store_path} has no collections map, starting empty")
            return self._records

        self._records = {str(k): v for k, v in collections.items()}
        return self._records

    def _save_store(self, records: dict[str, dict]) -> None:
        """Atomically write `records` to disk, then adopt them as the cache."""
        data = {"version": STORE_VERSION, "collections": records}

        try:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.store_path.parent, prefix=".policies-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, self.store_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PolicyStoreError(f"Failed to write policy store {self.store_path}: {e}") from e

        self._records = records

    def reload(self) -> None:
        """Drop the in-memory copy so the next read hits the disk."""
        self._records = None

    def has_policy(self, collection_id: str) -> bool:
        return collection_id in self._load_store()

    def list_ids(self) -> list[str]:
        return sorted(self._load_store())

    def load_policy(self, collection_id: str, collection_type: str | None = None) -> CollectionPolicy:
        """Get a collection's policy, or type-aware defaults for a new collection."""
        record = self._load_store().get(collection_id)
        if record is None:
            return default_policy_for(collection_type)
        return CollectionPolicy.from_raw(record)

    def save_policy(self, collection_id: str, policy: CollectionPolicy) -> None:
        """Replace a collection's policy as a whole."""
        records = {**self._load_store(), collection_id: policy.to_record()}
        self._save_store(records)
        logger.debug(f"Saved policy for collection {collection_id}")

    def delete_policy(self, collection_id: str) -> bool:
        records = dict(self._load_store())
        if collection_id not in records:
            return False
        del records[collection_id]
        self._save_store(records)
        logger.info(f"Deleted policy for collection {collection_id}")
        return True

    def cleanup_orphans(self, known_ids: Iterable[str]) -> list[str]:
        """Remove policies whose collection no longer exists.

        Returns:
            The removed collection ids.
        """
        keep = set(known_ids)
        records = self._load_store()
        orphans = sorted(cid for cid in records if cid not in keep)
        if not orphans:
            return []
        self._save_store({cid: r for cid, r in records.items() if cid in keep})
        logger.info(f"Removed {len(orphans)} orphaned collection policies")
        return orphans
