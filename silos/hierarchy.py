"""
Silo hierarchy normalization and adjacency rules.

Stored role/position rows are frequently inconsistent (two pillars, gaps in
positions, pages never assigned a role). Every audit and suggestion run derives
a canonical hierarchy from them:

- exactly one Pillar (explicit PILLAR first by sort key, else the first page)
- Support pages re-ranked 1..N by the same sort key
- Aux pages get their own 1..N ordinal and no support index

Adjacency ("who may link to whom"):
- Pillar  -> Support only
- Support[i] -> Pillar, Support[i-1], Support[i+1]
- Aux -> Pillar only
"""
import math
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

PILLAR = 'PILLAR'
SUPPORT = 'SUPPORT'
AUX = 'AUX'
ROLES = (PILLAR, SUPPORT, AUX)

# Structural guidance for a single silo
STRUCTURE_RULES = {
    'min_pillars': 1,
    'max_pillars': 1,
    'min_supports': 3,
    'max_supports': 12,
    'max_aux': 3,
}


def _clean_role(value: Any) -> Optional[str]:
    role = str(value or '').strip().upper()
    return role if role in ROLES else None


def _clean_position(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class HierarchyRow:
    """Raw (page, role, position) row as stored; role/position may be invalid."""
    page_id: int
    role: Optional[str] = None
    position: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'HierarchyRow':
        return cls(
            page_id=int(row['page_id']),
            role=_clean_role(row.get('role')),
            position=_clean_position(row.get('position')),
        )


@dataclass(frozen=True)
class HierarchyEntry:
    page_id: int
    role: str
    ordinal: int
    support_index: Optional[int] = None


@dataclass(frozen=True)
class NormalizedHierarchy:
    entries: Dict[int, HierarchyEntry] = field(default_factory=dict)
    pillar_id: Optional[int] = None

    def get(self, page_id) -> Optional[HierarchyEntry]:
        if page_id is None:
            return None
        return self.entries.get(page_id)

    def role_of(self, page_id) -> Optional[str]:
        entry = self.get(page_id)
        return entry.role if entry else None

    @property
    def support_ids(self) -> List[int]:
        supports = [e for e in self.entries.values() if e.role == SUPPORT]
        return [e.page_id for e in sorted(supports, key=lambda e: e.support_index)]

    @property
    def aux_ids(self) -> List[int]:
        aux = [e for e in self.entries.values() if e.role == AUX]
        return [e.page_id for e in sorted(aux, key=lambda e: e.ordinal)]

    def violation_reason(self, source_id, target_id) -> Optional[str]:
        """
        Return a human-readable reason when source -> target breaks the
        adjacency rule, or None when the link is allowed (or either page is
        outside the hierarchy).
        """
        source = self.get(source_id)
        target = self.get(target_id)
        if not source or not target:
            return None

        if source.role == PILLAR:
            return None if target.role == SUPPORT else "Pillar may only link to Support pages."

        if source.role == SUPPORT:
            if target.role == PILLAR:
                return None
            if (
                target.role == SUPPORT
                and source.support_index is not None
                and target.support_index is not None
                and abs(source.support_index - target.support_index) == 1
            ):
                return None
            return "Support may only link to the Pillar or its neighbouring Supports (N-1/N+1)."

        if source.role == AUX:
            return None if target.role == PILLAR else "Aux may only link to the Pillar."

        return None

    def eligible_targets(self, source_id) -> List[int]:
        """
        Page ids the source may link to. A source outside the hierarchy (a
        draft not yet placed in the silo) may target the Pillar and any Support.
        """
        source = self.get(source_id)
        if source is None:
            ids = [self.pillar_id] if self.pillar_id is not None else []
            return ids + [pid for pid in self.support_ids if pid != source_id]
        return [
            page_id for page_id in self.entries
            if page_id != source_id and self.violation_reason(source_id, page_id) is None
        ]

    def counts(self) -> Dict[str, int]:
        return {
            'pillars': 1 if self.pillar_id is not None else 0,
            'supports': len(self.support_ids),
            'aux': len(self.aux_ids),
        }


def rank_position(value: Optional[float]) -> float:
    if value is not None and math.isfinite(value) and value > 0:
        return value
    return math.inf


def collation_key(title: str) -> str:
    """Case- and accent-insensitive key so 'Água' sorts with 'agua', not after 'z'."""
    decomposed = unicodedata.normalize('NFD', str(title or ''))
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def normalize_hierarchy(pages: Iterable[Any], rows: Iterable[HierarchyRow]) -> NormalizedHierarchy:
    """
    Build the canonical hierarchy for one silo.

    ``pages`` need ``id`` and ``title`` attributes; ``rows`` are raw stored
    rows. Rows for pages not in ``pages`` are ignored, pages without a row are
    treated as unassigned (they become Support unless promoted to Pillar).
    """
    by_page = {row.page_id: row for row in rows}
    page_list = list(pages)

    def sort_key(page):
        row = by_page.get(page.id)
        return (
            rank_position(row.position if row else None),
            collation_key(page.title),
            str(page.title or ''),
            page.id,
        )

    def role_of(page):
        row = by_page.get(page.id)
        return row.role if row else None

    ordered = sorted(page_list, key=sort_key)
    if not ordered:
        return NormalizedHierarchy()

    explicit = [page for page in ordered if role_of(page) == PILLAR]
    pillar = explicit[0] if explicit else ordered[0]

    entries = {pillar.id: HierarchyEntry(page_id=pillar.id, role=PILLAR, ordinal=1)}

    supports = [p for p in ordered if p.id != pillar.id and role_of(p) != AUX]
    for index, page in enumerate(supports, start=1):
        entries[page.id] = HierarchyEntry(page_id=page.id, role=SUPPORT, ordinal=index, support_index=index)

    aux = [p for p in ordered if p.id != pillar.id and role_of(p) == AUX]
    for index, page in enumerate(aux, start=1):
        entries[page.id] = HierarchyEntry(page_id=page.id, role=AUX, ordinal=index)

    return NormalizedHierarchy(entries=entries, pillar_id=pillar.id)


def validate_structure(hierarchy: NormalizedHierarchy) -> List[Dict[str, Any]]:
    """Structural warnings for a silo (pillar/support/aux counts)."""
    counts = hierarchy.counts()
    violations = []

    if counts['pillars'] < STRUCTURE_RULES['min_pillars']:
        violations.append({
            'rule_id': 'MIN_PILLARS',
            'severity': 'error',
            'message': 'A silo needs a Pillar page.',
            'current_value': counts['pillars'],
            'expected_value': STRUCTURE_RULES['min_pillars'],
        })

    if counts['supports'] < STRUCTURE_RULES['min_supports']:
        violations.append({
            'rule_id': 'MIN_SUPPORTS',
            'severity': 'warning',
            'message': (
                f"A healthy silo has between {STRUCTURE_RULES['min_supports']} "
                f"and {STRUCTURE_RULES['max_supports']} Support pages."
            ),
            'current_value': counts['supports'],
            'expected_value': STRUCTURE_RULES['min_supports'],
        })

    if counts['supports'] > STRUCTURE_RULES['max_supports']:
        violations.append({
            'rule_id': 'MAX_SUPPORTS',
            'severity': 'warning',
            'message': 'Too many Support pages. Consider splitting the silo or moving some pages to Aux.',
            'current_value': counts['supports'],
            'expected_value': STRUCTURE_RULES['max_supports'],
        })

    if counts['aux'] > STRUCTURE_RULES['max_aux']:
        violations.append({
            'rule_id': 'MAX_AUX',
            'severity': 'warning',
            'message': 'Too many Aux pages for one silo.',
            'current_value': counts['aux'],
            'expected_value': STRUCTURE_RULES['max_aux'],
        })

    return violations
