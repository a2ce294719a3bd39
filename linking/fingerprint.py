"""
Content fingerprint of a silo's link graph, used to skip redundant audits.
"""
import hashlib
import json
from typing import Iterable, Optional

from silos.hierarchy import HierarchyRow, NormalizedHierarchy

from .records import OccurrenceRecord, PageRecord


def _hierarchy_entry(page: PageRecord, hierarchy: Optional[NormalizedHierarchy]) -> dict:
    entry = hierarchy.get(page.id) if hierarchy is not None else None
    return {
        'page_id': page.id,
        'title': page.title,
        'role': entry.role if entry else None,
        'ordinal': entry.ordinal if entry else None,
        'support_index': entry.support_index if entry else None,
    }


def compute_fingerprint(rows: Iterable[HierarchyRow], occurrences: Iterable[OccurrenceRecord],
                        pages: Iterable[PageRecord] = (), hierarchy: Optional[NormalizedHierarchy] = None) -> str:
    """
    SHA-256 over a canonical JSON document of the hierarchy rows, the
    normalized hierarchy of every page and the internal occurrences. Input
    order and dict key order do not matter.
    """
    payload = {
        'pages': [
            {'page_id': row.page_id, 'role': row.role, 'position': row.position}
            for row in sorted(rows, key=lambda row: row.page_id)
        ],
        'hierarchy': [_hierarchy_entry(page, hierarchy) for page in sorted(pages, key=lambda page: page.id)],
        'links': [
            {
                'id': occ.id,
                'source': occ.source_page_id,
                'target': occ.target_page_id,
                'anchor': occ.anchor_text,
                'context': occ.context_snippet,
                'position': occ.position_bucket,
                'updated_at': occ.updated_at,
            }
            for occ in sorted(occurrences, key=lambda occ: occ.id)
        ],
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return hashlib.sha256(encoded.encode('utf-8')).hexdigest()


def is_cache_hit(stored_fingerprint: Optional[str], current_fingerprint: str,
                 cached_rows: int, force_refresh: bool = False) -> bool:
    """A matching fingerprint only counts when cached audit rows exist."""
    if force_refresh or not stored_fingerprint:
        return False
    return stored_fingerprint == current_fingerprint and cached_rows > 0
