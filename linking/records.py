"""
Immutable records handed to the scoring code.

Query results are mapped through ``from_row`` so missing or malformed values
become explicit defaults before any scoring happens.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

BUCKETS = ('START', 'MID', 'END')


def _text(value: Any) -> str:
    return str(value) if value is not None else ''


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value).strip()
    return text or None


def _entities(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(item).strip() for item in value if item and str(item).strip())


def _timestamp(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return _optional_text(value)


@dataclass(frozen=True)
class PageRecord:
    id: int
    title: str
    slug: str
    target_keyword: Optional[str] = None
    entities: Tuple[str, ...] = ()
    content: str = ''
    path: str = ''

    @classmethod
    def from_row(cls, row: Dict[str, Any], silo_slug: str = '') -> 'PageRecord':
        slug = _text(row.get('slug')).strip()
        path = _optional_text(row.get('canonical_path')) or (f"/{silo_slug}/{slug}" if silo_slug else f"/{slug}")
        return cls(
            id=int(row['id']),
            title=_text(row.get('title')).strip(),
            slug=slug,
            target_keyword=_optional_text(row.get('target_keyword')),
            entities=_entities(row.get('entities')),
            content=_text(row.get('content')),
            path=path,
        )

    @property
    def keyword_or_title(self) -> str:
        return self.target_keyword or self.title


@dataclass(frozen=True)
class OccurrenceRecord:
    id: str
    source_page_id: int
    target_page_id: Optional[int]
    anchor_text: str
    context_snippet: str = ''
    position_bucket: str = 'START'
    link_type: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'OccurrenceRecord':
        target = row.get('target_page_id')
        bucket = _text(row.get('position_bucket')).upper()
        link_type = _optional_text(row.get('link_type'))
        return cls(
            id=str(row['id']),
            source_page_id=int(row['source_page_id']),
            target_page_id=int(target) if target is not None else None,
            anchor_text=_text(row.get('anchor_text')),
            context_snippet=_text(row.get('context_snippet')),
            position_bucket=bucket if bucket in BUCKETS else 'START',
            link_type=link_type.upper() if link_type else None,
            updated_at=_timestamp(row.get('updated_at')),
        )

    @property
    def is_internal(self) -> bool:
        """Internal and resolved to a page; an untyped link with a target counts as internal."""
        if self.target_page_id is None:
            return False
        return self.link_type is None or self.link_type == 'INTERNAL'
