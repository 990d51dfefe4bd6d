"""
Path utilities for reMarkable Cloud listings.

Item path building from parent links and folder lookup by path.
"""

from difflib import SequenceMatcher
from typing import Dict, Iterable, List, Optional

from rm_client.models import ROOT_ID, TRASH_ID, Document

# Paths of trashed items and everything below them start with this
TRASH_PREFIX = "/.trash/"


def get_items_by_id(collection: Iterable[Document]) -> Dict[str, Document]:
    """Build a lookup dict of items by ID."""
    return {item.id: item for item in collection}


def get_item_path(item: Document, items_by_id: Dict[str, Document]) -> str:
    """Get the full path of an item."""
    path_parts = [item.name]
    parent_id = item.parent
    visited = {item.id}
    while parent_id and parent_id in items_by_id and parent_id not in visited:
        visited.add(parent_id)
        parent = items_by_id[parent_id]
        path_parts.insert(0, parent.name)
        parent_id = parent.parent
    if parent_id == TRASH_ID:
        path_parts.insert(0, ".trash")
    return "/" + "/".join(path_parts)


def find_folder(path: str, collection: Iterable[Document]) -> Optional[str]:
    """Resolve a folder path like '/Books/Novels' to its ID.

    Matching is case-insensitive. Returns ROOT_ID for '/' or '',
    None when no folder has that path.
    """
    wanted = path.strip().strip("/").lower()
    if not wanted:
        return ROOT_ID

    items = list(collection)
    items_by_id = get_items_by_id(items)
    for item in items:
        if not item.is_folder:
            continue
        item_path = get_item_path(item, items_by_id)
        if item_path.startswith(TRASH_PREFIX):
            continue
        if item_path.strip("/").lower() == wanted:
            return item.id
    return None


def find_similar_folders(query: str, collection: Iterable[Document], limit: int = 5) -> List[str]:
    """Folder paths resembling ``query``, for 'did you mean' hints."""
    items = list(collection)
    items_by_id = get_items_by_id(items)
    query_lower = query.strip("/").lower()
    scored = []
    for item in items:
        if not item.is_folder:
            continue
        path = get_item_path(item, items_by_id)
        if path.startswith(TRASH_PREFIX):
            continue
        ratio = SequenceMatcher(None, query_lower, path.strip("/").lower()).ratio()
        if query_lower and query_lower in path.lower():
            ratio += 0.3
        scored.append((path, ratio))

    scored.sort(key=lambda x: x[1], reverse=True)
    return [path for path, score in scored[:limit] if score > 0.3]
