"""
Internal link suggestion entry point.

Given the text of an article being edited, proposes internal links to the
pages of its silo that the hierarchy allows, anchored on phrases already in
the text. An optional re-ranker may reorder the shortlist; without it (or
when it fails) the heuristic ranking is returned.
"""
import logging
from typing import Any, Dict, Optional

from django.shortcuts import get_object_or_404

from silos.hierarchy import normalize_hierarchy
from silos.models import Silo

from . import storage
from .anchors import extract_anchor_candidates
from .occurrences import build_path_index, path_from_href, resolve_target, site_host
from .oracle import SuggestionReranker, default_reranker, request_rerank, STATUS_SKIPPED
from .ranking import (
    SHORTLIST_SIZE, apply_floors, apply_rerank, diversify, score_candidates,
)
from .semantic import SemanticIndex
from .serializers import DEFAULT_SUGGESTIONS, LinkSuggestionRequestSerializer
from .text import strip_html

logger = logging.getLogger(__name__)

ARTICLE_EXCERPT_LENGTH = 9000

_DEFAULT = object()


def _empty(message: str, diagnostics: Dict[str, Any], coverage=None, source: str = 'empty') -> Dict[str, Any]:
    return {
        'suggestions': [],
        'diagnostics': diagnostics,
        'coverage': coverage or [],
        'source': source,
        'message': message,
    }


def suggest_links(request_data: Dict[str, Any], advisor: Optional[SuggestionReranker] = _DEFAULT) -> Dict[str, Any]:
    """
    Suggest internal links for an article.

    Raises ``rest_framework.serializers.ValidationError`` for malformed input. Everything
    else (no eligible targets, nothing passing the filters, everything
    already linked) is an explicit empty result with a message.
    """
    serializer = LinkSuggestionRequestSerializer(data=request_data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    silo = get_object_or_404(Silo, id=data['silo_id'])
    return suggest_for_silo(silo, data, advisor)


def suggest_for_silo(silo, data: Dict[str, Any], advisor: Optional[SuggestionReranker] = _DEFAULT) -> Dict[str, Any]:
    """Suggestions for already validated request data of a loaded silo."""
    if advisor is _DEFAULT:
        advisor = default_reranker()

    max_suggestions = data.get('max_suggestions') or DEFAULT_SUGGESTIONS
    pages = storage.load_pages(silo)
    pages_by_id = {page.id: page for page in pages}
    hierarchy = normalize_hierarchy(pages, storage.load_hierarchy_rows(silo))

    source_id = data.get('page_id') if data.get('page_id') in pages_by_id else None
    source_role = hierarchy.role_of(source_id)
    targets = [pages_by_id[pid] for pid in hierarchy.eligible_targets(source_id)
               if pid in pages_by_id and pid != source_id]

    diagnostics = {
        'source_page_id': source_id,
        'source_role': source_role,
        'eligible_targets': len(targets),
        'ai_status': STATUS_SKIPPED,
    }
    if not targets:
        return _empty('No page of this silo is an eligible link target for this article.', diagnostics)

    path_index = build_path_index(pages)
    own_host = site_host()
    linked_ids = set()
    for link in data.get('existing_links') or []:
        if link.get('page_id') in pages_by_id:
            linked_ids.add(link['page_id'])
        href = (link.get('href') or '').strip()
        if href:
            target_id = resolve_target(path_from_href(href, own_host), path_index)
            if target_id is not None:
                linked_ids.add(target_id)

    uncovered = [target.id for target in targets if target.id not in linked_ids]
    coverage = [
        {
            'target_page_id': target.id,
            'title': target.title,
            'role': hierarchy.role_of(target.id),
            'already_linked': target.id in linked_ids,
            'suggested': False,
        }
        for target in targets
    ]
    diagnostics['already_linked'] = len(targets) - len(uncovered)
    if not uncovered:
        return _empty('All eligible targets are already linked.', diagnostics, coverage)

    text = strip_html(data['text'])
    article_core = ' '.join(filter(None, [data.get('title'), data.get('keyword')]))
    index = SemanticIndex(targets, article_core, text, corpus=pages)
    anchors = extract_anchor_candidates(text, targets, index)
    roles = {target.id: hierarchy.role_of(target.id) for target in targets}

    scored = score_candidates(source_role, targets, roles, index, anchors, data.get('keyword') or '', linked_ids)
    required = min(max_suggestions, len(uncovered))
    pool = apply_floors(scored, required, uncovered)

    diagnostics.update({
        'anchor_candidates': sum(len(options) for options in anchors.values()),
        'relaxed_targets': sorted(tid for tid, options in anchors.items() if options and all(o.relaxed for o in options)),
        'fallback_targets': sorted(tid for tid, options in anchors.items() if not options),
        'scored': len(scored),
        'after_floors': len(pool),
    })

    suggestions = diversify(pool, max_suggestions, uncovered)
    shortlist = diversify(pool, SHORTLIST_SIZE, uncovered)
    records, ai_status = request_rerank(advisor, {
        'article': {
            'title': data.get('title') or '',
            'keyword': data.get('keyword') or '',
            'role': source_role,
            'text_excerpt': text[:ARTICLE_EXCERPT_LENGTH],
        },
        'candidates': [
            {
                'candidate_id': c.candidate_id,
                'title': c.title,
                'target_keyword': pages_by_id[c.target_page_id].target_keyword,
                'role': c.role,
                'anchor_text': c.anchor_text,
                'position_bucket': c.position_bucket,
                'semantic_score': c.semantic_score,
                'hierarchy_score': c.hierarchy_score,
                'final_score': c.final_score,
                'already_linked': c.already_linked,
            }
            for c in shortlist
        ],
    })
    diagnostics['ai_status'] = ai_status
    if records:
        suggestions = apply_rerank(shortlist, records, max_suggestions)

    suggested_targets = {c.target_page_id for c in suggestions}
    for item in coverage:
        item['suggested'] = item['target_page_id'] in suggested_targets

    if not suggestions:
        return _empty('No internal link suggestion passed the quality filters.', diagnostics, coverage)

    source = 'ai+heuristic' if any(c.source == 'ai' for c in suggestions) else 'heuristic'
    logger.info(
        "Link suggestions for silo %s page %s: %d suggestions (%s)",
        silo.id, source_id, len(suggestions), source,
    )
    return {
        'suggestions': [c.to_dict() for c in suggestions],
        'diagnostics': diagnostics,
        'coverage': coverage,
        'source': source,
        'message': None,
    }
