"""
Process-wide content cache.

Latest known-good content per document type: one document for pages, a list
of items for collections. The cache is a plain object handed to whoever needs
it; the dashboard keeps one per process. Values go in and come out as deep
copies so no caller can change cached state behind the cache's back.
"""

import logging
import threading
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)


class ContentCache:
    """In-memory store of page documents and collection items."""

    def __init__(self, pages: Optional[Dict[str, Dict[str, Any]]] = None,
                 collections: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._pages: Dict[str, Dict[str, Any]] = deepcopy(pages) if pages else {}
        self._collections: Dict[str, List[Dict[str, Any]]] = deepcopy(collections) if collections else {}
        self._lock = threading.RLock()

    @classmethod
    def from_seed(cls, seed_path: Union[str, Path]) -> 'ContentCache':
        """
        Create a cache pre-filled from a seed YAML file.

        The file has two mappings, ``pages`` (doc type -> document) and
        ``collections`` (doc type -> list of items). A missing or unreadable
        file gives an empty cache.
        """
        seed_path = Path(seed_path)
        if not seed_path.exists():
            logger.warning(f"Seed file not found: {seed_path}")
            return cls()

        try:
            with open(seed_path, 'r', encoding='utf-8') as f:
                seed = yaml.safe_load(f) or {}
        except (yaml.YAMLError, IOError, OSError) as e:
            logger.error(f"Failed to read seed file {seed_path}: {e}")
            return cls()

        if not isinstance(seed, dict):
            logger.error(f"Seed file {seed_path} is not a mapping")
            return cls()

        cache = cls(pages=seed.get('pages') or {}, collections=seed.get('collections') or {})
        logger.info(f"Content cache seeded with {len(cache._pages)} page(s) and "
                    f"{len(cache._collections)} collection(s) from {seed_path}")
        return cache

    # Pages

    def get(self, doc_type: str) -> Optional[Dict[str, Any]]:
        """Cached page document, or None if nothing is known yet."""
        with self._lock:
            document = self._pages.get(doc_type)
            return deepcopy(document) if document is not None else None

    def set(self, doc_type: str, document: Dict[str, Any]) -> None:
        """Replace the cached page document."""
        with self._lock:
            self._pages[doc_type] = deepcopy(document)
        logger.debug(f"Cache set for '{doc_type}'")

    def has(self, doc_type: str) -> bool:
        with self._lock:
            return doc_type in self._pages or doc_type in self._collections

    # Collections

    def get_collection(self, doc_type: str) -> List[Dict[str, Any]]:
        with self._lock:
            return deepcopy(self._collections.get(doc_type, []))

    def set_collection(self, doc_type: str, items: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._collections[doc_type] = deepcopy(list(items))
        logger.debug(f"Cache set for collection '{doc_type}' ({len(items)} items)")

    def get_item(self, doc_type: str, item_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for item in self._collections.get(doc_type, []):
                if item.get('id') == item_id:
                    return deepcopy(item)
        return None

    def upsert_item(self, doc_type: str, item: Dict[str, Any]) -> None:
        """
        Replace the item with the same id, or add it at the front when new.

        New items go first, matching the newest-first listing of collections.
        """
        item_id = item.get('id')
        if not item_id:
            raise ValueError(f"Cannot cache an item of '{doc_type}' without an id")

        with self._lock:
            items = self._collections.setdefault(doc_type, [])
            for position, existing in enumerate(items):
                if existing.get('id') == item_id:
                    items[position] = deepcopy(item)
                    return
            items.insert(0, deepcopy(item))

    def remove_item(self, doc_type: str, item_id: str) -> bool:
        """Remove an item; returns False if it was not cached."""
        with self._lock:
            items = self._collections.get(doc_type, [])
            for position, existing in enumerate(items):
                if existing.get('id') == item_id:
                    del items[position]
                    return True
        return False

    # Whole cache

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of everything, in the seed file layout."""
        with self._lock:
            return {'pages': deepcopy(self._pages), 'collections': deepcopy(self._collections)}

    def clear(self) -> None:
        with self._lock:
            self._pages.clear()
            self._collections.clear()
        logger.info("Content cache cleared")
