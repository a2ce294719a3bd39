"""
Silo audit entry point.

Syncs link occurrences from stored HTML, scores every internal link, merges
optional advisor input, aggregates silo health and persists the result.
Unchanged silos are answered from the stored audit (fingerprint gate).
"""
import logging
from typing import Any, Dict, Optional

from silos.hierarchy import normalize_hierarchy

from . import storage
from .fingerprint import compute_fingerprint, is_cache_hit
from .health import aggregate_health, analyze_structure
from .merge import resolve_link_audit
from .occurrences import sync_silo_occurrences
from .oracle import AuditAdvisor, default_audit_advisor, request_audit_advice, STATUS_SKIPPED, STATUS_SUCCESS
from .scoring import AuditInput, OccurrenceCounters, score_link
from .text import count_words, strip_html

logger = logging.getLogger(__name__)

CONTEXT_LIMIT = 240
SOURCE_KEYWORDS_LIMIT = 5
TARGET_KEYWORDS_LIMIT = 10

_DEFAULT = object()


def _advisor_payload(silo, internal, pages_by_id) -> Dict[str, Any]:
    links = []
    for occ in internal:
        source = pages_by_id.get(occ.source_page_id)
        target = pages_by_id.get(occ.target_page_id)
        snippet = ' '.join((occ.context_snippet or '').split())
        source_keywords = [k for k in [source.target_keyword if source else None,
                                       *(source.entities[:SOURCE_KEYWORDS_LIMIT] if source else ())] if k]
        target_keywords = [k for k in [target.target_keyword if target else None,
                                       *(target.entities[:TARGET_KEYWORDS_LIMIT] if target else ())] if k]
        links.append({
            'occurrenceId': occ.id,
            'sourceTitle': source.title if source else '',
            'targetTitle': target.title if target else '',
            'anchorText': occ.anchor_text,
            'contextSnippet': snippet[:CONTEXT_LIMIT],
            'sourceFocusKeywords': source_keywords or None,
            'targetFocusKeywords': target_keywords or None,
        })
    return {'silo': silo.name, 'links': links}


def _cached_result(stored, cached_audits) -> Dict[str, Any]:
    return {
        'health_score': stored.health_score,
        'status': stored.status,
        'issues': stored.issues,
        'link_audits': cached_audits,
        'summary': stored.summary,
        'cached': True,
        'ai_status': (stored.summary or {}).get('ai_status', STATUS_SKIPPED),
        'message': 'Audit is already up to date (cached).',
    }


def audit_silo(silo, force_refresh: bool = False, advisor: Optional[AuditAdvisor] = _DEFAULT) -> Dict[str, Any]:
    """
    Audit every internal link of a silo.

    Returns {health_score, status, issues, link_audits, summary, cached,
    ai_status, message}. Pass ``advisor=None`` to run heuristics only.
    """
    if advisor is _DEFAULT:
        advisor = default_audit_advisor()

    pages = storage.load_pages(silo)
    page_ids = [page.id for page in pages]
    pages_by_id = {page.id: page for page in pages}

    sync = sync_silo_occurrences(silo, pages)
    rows = storage.load_hierarchy_rows(silo)
    failed = set(sync['failed_page_ids'])
    occurrences = storage.load_occurrences(silo, [pid for pid in page_ids if pid not in failed])
    internal = [occ for occ in occurrences if occ.is_internal and occ.target_page_id in pages_by_id]

    logger.info(
        "Silo audit snapshot %s: pages=%d occurrences=%d internal=%d sync=%s",
        silo.id, len(pages), len(occurrences), len(internal), sync,
    )

    hierarchy = normalize_hierarchy(pages, rows)
    fingerprint = compute_fingerprint(rows, internal, pages, hierarchy)
    if not force_refresh:
        stored = storage.latest_silo_audit(silo)
        if stored is not None and stored.fingerprint == fingerprint:
            cached_audits = storage.load_cached_audits(silo)
            if is_cache_hit(stored.fingerprint, fingerprint, len(cached_audits)):
                return _cached_result(stored, cached_audits)
            logger.warning("Silo audit cache for %s is empty, recomputing (fingerprint %s)", silo.id, fingerprint)

    storage.save_support_indexes(silo, hierarchy)

    structure = analyze_structure(hierarchy, page_ids, internal)
    word_counts = {page.id: count_words(strip_html(page.content)) for page in pages}
    counters = OccurrenceCounters(internal, word_counts)
    missing_pillar = set(structure.supports_without_pillar)

    base_audits = []
    for occ in internal:
        target = pages_by_id[occ.target_page_id]
        base_audits.append((occ, score_link(AuditInput(
            anchor_text=occ.anchor_text,
            context_snippet=occ.context_snippet,
            source_role=hierarchy.role_of(occ.source_page_id),
            target_role=hierarchy.role_of(occ.target_page_id),
            hierarchy_violation=structure.violations.get(occ.id),
            target_title=target.title,
            target_keyword=target.target_keyword,
            target_entities=target.entities,
            support_missing_pillar=occ.source_page_id in missing_pillar,
            signals=counters.signals_for(occ),
        ))))

    advice, ai_status = request_audit_advice(advisor, _advisor_payload(silo, internal, pages_by_id))

    results = sorted(
        (resolve_link_audit(occ.id, occ.target_page_id, base, advice.get(occ.id)) for occ, base in base_audits),
        key=lambda audit: audit.occurrence_id,
    )
    report = aggregate_health(structure, results, {page.id: page.title for page in pages}, ai_status)

    storage.persist_audit(silo, results, report, fingerprint)
    logger.info(
        "Silo audit %s: health=%d status=%s links=%d ai=%s",
        silo.id, report.health_score, report.status, len(results), ai_status,
    )

    return {
        'health_score': report.health_score,
        'status': report.status,
        'issues': report.issues,
        'link_audits': [audit.to_dict() for audit in results],
        'summary': report.summary,
        'cached': False,
        'ai_status': ai_status,
        'message': 'Smart audit completed.' if ai_status == STATUS_SUCCESS else 'Standard audit completed.',
    }
