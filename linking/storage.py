"""
Storage adapter for the link engine.

Reads ORM rows into immutable records and writes audits with the
"delete for this silo, then insert" pattern. Optional columns (added by later
migrations, possibly missing on an older database) are negotiated once per
process via database introspection; a missing-column error on write is
inspected here, and only here, for a single reduced-field retry.
"""
import logging
import re
from contextlib import nullcontext
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Sequence

from django.db import DatabaseError, connection, transaction
from django.utils import timezone

from silos.hierarchy import HierarchyRow, NormalizedHierarchy
from silos.models import Page, SiloPage

from .health import HealthReport
from .merge import LinkAuditResult
from .models import LinkAudit, LinkOccurrence, SiloAudit
from .records import OccurrenceRecord, PageRecord

logger = logging.getLogger(__name__)

PAGE_REQUIRED_FIELDS = ('id', 'title', 'slug', 'content')
PAGE_OPTIONAL_FIELDS = ('target_keyword', 'entities', 'canonical_path')
LINK_AUDIT_OPTIONAL_FIELDS = ('target_page', 'note', 'intent_match', 'mismatch')

OCCURRENCE_FIELDS = (
    'id', 'source_page_id', 'target_page_id', 'anchor_text', 'context_snippet',
    'position_bucket', 'link_type', 'updated_at',
)

_MISSING_COLUMN_PATTERNS = (
    re.compile(r'column "?(?:\w+\.)?(\w+)"? of relation "?\w+"? does not exist', re.IGNORECASE),
    re.compile(r'column "?\w+\.(\w+)"? does not exist', re.IGNORECASE),
    re.compile(r'column "?(\w+)"? does not exist', re.IGNORECASE),
    re.compile(r'has no column named (\w+)', re.IGNORECASE),
    re.compile(r'no such column: (?:\w+\.)?(\w+)', re.IGNORECASE),
    re.compile(r"Unknown column '(?:\w+\.)?(\w+)'", re.IGNORECASE),
)

# Columns found missing at runtime, per table
_missing_columns: Dict[str, set] = {}


def missing_column_from_error(error: Exception) -> Optional[str]:
    """Name of the column a database error complains about, if any."""
    message = str(error)
    for pattern in _MISSING_COLUMN_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


@lru_cache(maxsize=None)
def table_columns(table: str) -> Optional[frozenset]:
    """Column names of a table, or None when introspection is unavailable."""
    try:
        with connection.cursor() as cursor:
            description = connection.introspection.get_table_description(cursor, table)
    except DatabaseError as e:
        logger.warning("Could not introspect table %s: %s", table, e)
        return None
    return frozenset(column.name for column in description)


def reset_column_cache():
    table_columns.cache_clear()
    _missing_columns.clear()


def supported_fields(model, optional: Sequence[str]) -> List[str]:
    """Optional field names of ``model`` whose column exists in the database."""
    table = model._meta.db_table
    columns = table_columns(table)
    missing = _missing_columns.get(table, set())
    supported = []
    for name in optional:
        column = model._meta.get_field(name).column
        if column in missing:
            continue
        if columns is None or column in columns:
            supported.append(name)
    return supported


def _forget_column(model, column: str) -> bool:
    """Record a column as missing; False when it is not an optional column."""
    table = model._meta.db_table
    optional_columns = {
        model._meta.get_field(name).column: name
        for name in (PAGE_OPTIONAL_FIELDS if model is Page else LINK_AUDIT_OPTIONAL_FIELDS)
    }
    if column not in optional_columns:
        return False
    _missing_columns.setdefault(table, set()).add(column)
    logger.warning("Column %s.%s is missing, continuing without it", table, column)
    return True


def _atomic():
    return transaction.atomic() if connection.features.supports_transactions else nullcontext()


# Reads

def load_pages(silo) -> List[PageRecord]:
    def query():
        fields = list(PAGE_REQUIRED_FIELDS) + supported_fields(Page, PAGE_OPTIONAL_FIELDS)
        with _atomic():
            return list(Page.objects.filter(silo=silo).order_by('id').values(*fields))

    try:
        rows = query()
    except DatabaseError as e:
        column = missing_column_from_error(e)
        if not column or not _forget_column(Page, column):
            raise
        rows = query()
    return [PageRecord.from_row(row, silo_slug=silo.slug) for row in rows]


def load_hierarchy_rows(silo) -> List[HierarchyRow]:
    rows = SiloPage.objects.filter(silo=silo).order_by('page_id').values('page_id', 'role', 'position')
    return [HierarchyRow.from_row(row) for row in rows]


def load_occurrences(silo, source_page_ids: Optional[Iterable[int]] = None) -> List[OccurrenceRecord]:
    queryset = LinkOccurrence.objects.filter(silo=silo)
    if source_page_ids is not None:
        queryset = queryset.filter(source_page_id__in=list(source_page_ids))
    return [OccurrenceRecord.from_row(row) for row in queryset.order_by('id').values(*OCCURRENCE_FIELDS)]


def load_cached_audits(silo) -> List[Dict[str, Any]]:
    fields = [
        'occurrence_id', 'score', 'label', 'reasons', 'suggested_anchor', 'action',
        'recommendation', 'spam_risk',
    ]
    optional = supported_fields(LinkAudit, LINK_AUDIT_OPTIONAL_FIELDS)
    fields += ['target_page_id' if name == 'target_page' else name for name in optional]
    rows = LinkAudit.objects.filter(silo=silo).order_by('occurrence_id').values(*fields)
    audits = []
    for row in rows:
        audits.append({
            'occurrence_id': str(row['occurrence_id']),
            'target_page_id': row.get('target_page_id'),
            'score': row['score'],
            'label': row['label'],
            'reasons': list(row['reasons'] or []),
            'suggested_anchor': row['suggested_anchor'],
            'note': row.get('note'),
            'action': row['action'],
            'recommendation': row['recommendation'],
            'spam_risk': row['spam_risk'],
            'intent_match': row.get('intent_match'),
            'mismatch': bool(row.get('mismatch', False)),
        })
    return sorted(audits, key=lambda audit: audit['occurrence_id'])


def latest_silo_audit(silo) -> Optional[SiloAudit]:
    return SiloAudit.objects.filter(silo=silo).order_by('-created_at', '-id').first()


# Writes

def save_support_indexes(silo, hierarchy: NormalizedHierarchy) -> int:
    """Cache the support index of the last normalization on the stored rows."""
    rows = list(SiloPage.objects.filter(silo=silo))
    changed = []
    for row in rows:
        entry = hierarchy.get(row.page_id)
        support_index = entry.support_index if entry else None
        if row.support_index != support_index:
            row.support_index = support_index
            changed.append(row)
    if changed:
        SiloPage.objects.bulk_update(changed, ['support_index'])
    return len(changed)


def _audit_row(silo, audit: LinkAuditResult) -> Dict[str, Any]:
    return {
        'silo_id': silo.id,
        'occurrence_id': audit.occurrence_id,
        'target_page_id': audit.target_page_id,
        'score': audit.score,
        'label': audit.label,
        'reasons': list(audit.reasons),
        'suggested_anchor': (audit.suggested_anchor or '')[:500] or None,
        'note': audit.note,
        'spam_risk': audit.spam_risk,
        'action': audit.action,
        'recommendation': audit.recommendation,
        'intent_match': audit.intent_match,
        'mismatch': audit.mismatch,
        'created_at': timezone.now(),
    }


def _insert_rows(model, rows: List[Dict[str, Any]], optional: Sequence[str]):
    """
    Insert rows, leaving out optional columns the database does not have.
    Falls back to a plain INSERT with the reduced column list.
    """
    supported = set(supported_fields(model, optional))
    dropped = [name for name in optional if name not in supported]
    if not dropped:
        model.objects.bulk_create([model(**row) for row in rows])
        return

    dropped_attnames = {model._meta.get_field(name).attname for name in dropped}
    fields = [
        field for field in model._meta.concrete_fields
        if not field.primary_key and field.attname not in dropped_attnames
    ]
    quote = connection.ops.quote_name
    sql = "INSERT INTO {} ({}) VALUES ({})".format(
        quote(model._meta.db_table),
        ', '.join(quote(field.column) for field in fields),
        ', '.join(['%s'] * len(fields)),
    )
    params = [
        [field.get_db_prep_save(row.get(field.attname), connection=connection) for field in fields]
        for row in rows
    ]
    with connection.cursor() as cursor:
        cursor.executemany(sql, params)


def replace_link_audits(silo, audits: Sequence[LinkAuditResult]) -> int:
    LinkAudit.objects.filter(silo=silo).delete()
    if not audits:
        return 0
    rows = [_audit_row(silo, audit) for audit in audits]
    try:
        with _atomic():
            _insert_rows(LinkAudit, rows, LINK_AUDIT_OPTIONAL_FIELDS)
    except DatabaseError as e:
        column = missing_column_from_error(e)
        if not column or not _forget_column(LinkAudit, column):
            raise
        with _atomic():
            _insert_rows(LinkAudit, rows, LINK_AUDIT_OPTIONAL_FIELDS)
    return len(rows)


def replace_silo_audit(silo, report: HealthReport, fingerprint: str) -> SiloAudit:
    SiloAudit.objects.filter(silo=silo).delete()
    return SiloAudit.objects.create(
        silo=silo,
        health_score=report.health_score,
        status=report.status,
        issues=report.issues,
        summary=report.summary,
        fingerprint=fingerprint,
    )


def persist_audit(silo, audits: Sequence[LinkAuditResult], report: HealthReport, fingerprint: str) -> bool:
    """
    Replace the link audits and the silo audit of one silo. Failures are
    logged; the caller still returns the computed result.
    """
    try:
        with _atomic():
            inserted = replace_link_audits(silo, audits)
            replace_silo_audit(silo, report, fingerprint)
    except DatabaseError as e:
        logger.error(f"Failed to persist audit for silo {silo.id}: {e}")
        return False
    logger.info("Persisted %d link audits for silo %s", inserted, silo.id)
    return True
