"""
Silo Health Aggregator

Turns the structural link analysis and the per-link audits of one silo into a
single 0-100 health score. Additive penalties are applied first, then a
ceiling derived from aggregate signals (the ceiling never adds points).
"""
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from silos.hierarchy import NormalizedHierarchy

from .merge import LinkAuditResult
from .records import OccurrenceRecord

MISSING_PILLAR_PENALTY = 40
ISOLATED_PAGE_PENALTY = 5
MAX_ISOLATED_LISTED = 10
SUPPORT_MISSING_PILLAR_PENALTY = 10
SUPPORT_MISSING_PILLAR_CAP = 30
PILLAR_MISSING_SUPPORT_PENALTY = 5
PILLAR_MISSING_SUPPORT_CAP = 20
VIOLATION_PENALTY = 6
VIOLATION_CAP = 35
MAX_VIOLATIONS_LISTED = 12
LINK_ISSUES_PER_LABEL = 5


@dataclass(frozen=True)
class StructureReport:
    """Graph-level findings computed before any link is scored."""
    pillar_id: Optional[int]
    isolated: List[int] = field(default_factory=list)
    supports_without_pillar: List[int] = field(default_factory=list)
    pillar_missing_supports: List[int] = field(default_factory=list)
    # occurrence id -> violation reason, in occurrence order
    violations: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class HealthReport:
    health_score: int
    status: str
    issues: List[Dict[str, Any]]
    summary: Dict[str, Any]


def analyze_structure(hierarchy: NormalizedHierarchy, page_ids: Sequence[int],
                      occurrences: Sequence[OccurrenceRecord]) -> StructureReport:
    inbound = Counter(occ.target_page_id for occ in occurrences)
    outbound = Counter(occ.source_page_id for occ in occurrences)
    pairs = {(occ.source_page_id, occ.target_page_id) for occ in occurrences}
    pillar_id = hierarchy.pillar_id

    isolated = [pid for pid in page_ids if not inbound[pid] and not outbound[pid]]

    supports_without_pillar = []
    pillar_missing_supports = []
    if pillar_id is not None:
        for support_id in hierarchy.support_ids:
            if (support_id, pillar_id) not in pairs:
                supports_without_pillar.append(support_id)
            if (pillar_id, support_id) not in pairs:
                pillar_missing_supports.append(support_id)

    violations = {}
    for occ in occurrences:
        reason = hierarchy.violation_reason(occ.source_page_id, occ.target_page_id)
        if reason:
            violations[occ.id] = reason

    return StructureReport(
        pillar_id=pillar_id,
        isolated=isolated,
        supports_without_pillar=supports_without_pillar,
        pillar_missing_supports=pillar_missing_supports,
        violations=violations,
    )


def status_for(score: int) -> str:
    if score < 50:
        return 'CRITICAL'
    if score < 80:
        return 'WARNING'
    return 'OK'


def health_ceiling(weak_pct: float, mismatch_count: int, generic_count: int,
                   structure: StructureReport) -> int:
    ceiling = 100
    if weak_pct >= 15:
        ceiling = min(ceiling, 85)
    if mismatch_count > 0:
        ceiling = min(ceiling, 95)
    if mismatch_count >= 3:
        ceiling = min(ceiling, 80)
    if generic_count >= 5:
        ceiling = min(ceiling, 70)
    if structure.supports_without_pillar:
        ceiling = min(ceiling, 60)
    if structure.pillar_missing_supports:
        ceiling = min(ceiling, 70)
    if structure.violations:
        ceiling = min(ceiling, 65)
    if len(structure.violations) >= 3:
        ceiling = min(ceiling, 55)
    return ceiling


def aggregate_health(structure: StructureReport, audits: Sequence[LinkAuditResult],
                     titles: Dict[int, str], ai_status: str = 'skipped') -> HealthReport:
    issues = []
    score = 100

    if structure.pillar_id is None:
        score -= MISSING_PILLAR_PENALTY
        issues.append({'severity': 'critical', 'message': 'No Pillar page defined.',
                       'action': 'Set the Pillar page of this silo.'})

    score -= ISOLATED_PAGE_PENALTY * len(structure.isolated)
    for page_id in structure.isolated[:MAX_ISOLATED_LISTED]:
        issues.append({
            'severity': 'medium',
            'message': f"Isolated page (no links): {titles.get(page_id) or 'Untitled page'}",
            'target_page_id': page_id,
        })

    if structure.supports_without_pillar:
        score -= min(SUPPORT_MISSING_PILLAR_CAP,
                     SUPPORT_MISSING_PILLAR_PENALTY * len(structure.supports_without_pillar))
        for page_id in structure.supports_without_pillar:
            issues.append({
                'severity': 'high',
                'message': 'Support page does not link to the Pillar.',
                'action': 'Add a link to the Pillar with a descriptive anchor.',
                'target_page_id': page_id,
            })

    if structure.pillar_missing_supports:
        score -= min(PILLAR_MISSING_SUPPORT_CAP,
                     PILLAR_MISSING_SUPPORT_PENALTY * len(structure.pillar_missing_supports))
        issues.append({
            'severity': 'high',
            'message': 'Pillar does not link to every Support page.',
            'action': 'Add a link from the Pillar to each Support page.',
            'target_page_id': structure.pillar_id,
        })

    if structure.violations:
        score -= min(VIOLATION_CAP, VIOLATION_PENALTY * len(structure.violations))
        for occurrence_id, reason in list(structure.violations.items())[:MAX_VIOLATIONS_LISTED]:
            issues.append({
                'severity': 'high',
                'message': 'Internal link breaks the silo hierarchy.',
                'action': reason,
                'occurrence_id': occurrence_id,
            })

    total = len(audits)
    weak = [a for a in audits if a.label == 'WEAK']
    ok = [a for a in audits if a.label == 'OK']
    strong_count = sum(1 for a in audits if a.label == 'STRONG')
    weak_pct = (len(weak) / total) * 100 if total else 0.0
    mismatch_count = sum(1 for a in audits if a.mismatch)
    generic_count = sum(1 for a in audits if 'ANCHOR_GENERIC' in a.reasons)
    spam_high_count = sum(1 for a in audits if a.spam_risk >= 70)

    for audit in sorted(weak, key=lambda a: a.score)[:LINK_ISSUES_PER_LABEL]:
        issues.append({
            'severity': 'high',
            'message': f"Weak link ({audit.reasons[0] if audit.reasons else 'WEAK_LINK'})",
            'action': audit.recommendation or 'Review the anchor and the context of this link.',
            'occurrence_id': audit.occurrence_id,
            'target_page_id': audit.target_page_id,
        })
    for audit in sorted(ok, key=lambda a: a.score)[:LINK_ISSUES_PER_LABEL]:
        issues.append({
            'severity': 'medium',
            'message': f"Alert ({audit.reasons[0] if audit.reasons else 'ALERT'})",
            'action': audit.recommendation or 'Review the anchor and the context of this link.',
            'occurrence_id': audit.occurrence_id,
            'target_page_id': audit.target_page_id,
        })

    score = max(0, min(100, score))
    score = max(0, min(score, health_ceiling(weak_pct, mismatch_count, generic_count, structure)))

    summary = {
        'total_links': total,
        'weak_pct': math.floor(weak_pct + 0.5),
        'weak_count': len(weak),
        'ok_count': len(ok),
        'strong_count': strong_count,
        'mismatch_count': mismatch_count,
        'generic_anchor_count': generic_count,
        'spam_risk_high_count': spam_high_count,
        'isolated_count': len(structure.isolated),
        'supports_without_pillar_count': len(structure.supports_without_pillar),
        'pillar_missing_supports_count': len(structure.pillar_missing_supports),
        'hierarchy_violations_count': len(structure.violations),
        'ai_status': ai_status,
    }
    return HealthReport(health_score=score, status=status_for(score), issues=issues, summary=summary)
