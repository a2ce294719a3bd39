"""
Deterministic Link Audit Scorer

Scores one internal link occurrence (0-100), labels it STRONG / OK / WEAK and
explains the verdict with ordered reason codes. Cross-link signals (duplicate
anchors, link chaining, density) come from OccurrenceCounters, computed once
per silo.
"""
import math
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from silos.hierarchy import PILLAR, SUPPORT

from .lexicon import PLACEHOLDER_ANCHORS, Lexicon, get_lexicon
from .records import OccurrenceRecord
from .text import extract_keywords, intersect_count, is_generic_anchor, normalize

CRITICAL_REASONS = frozenset({
    'ANCHOR_GENERIC',
    'ANCHOR_TOO_SHORT',
    'MISMATCH_TOPIC',
    'HIERARCHY_VIOLATION',
    'OVER_OPTIMIZED_ANCHOR',
    'LINK_CHAINING',
    'SUPPORT_NOT_LINKING_PILLAR',
    'HIDDEN_LINK_PATTERN',
})

WARNING_REASONS = frozenset({
    'ANCHOR_VAGUE',
    'LOW_VALUE_LINK',
    'HIGH_LINK_DENSITY',
    'SAME_TARGET_TOO_MANY',
    'POTENTIAL_SPAM_PATTERN',
})

PENALTIES = {
    'ANCHOR_GENERIC': 40,
    'ANCHOR_TOO_SHORT': 20,
    'MISMATCH_TOPIC': 35,
    'HIERARCHY_VIOLATION': 35,
    'ANCHOR_VAGUE': 10,
    'OVER_OPTIMIZED_ANCHOR': 20,
    'LINK_CHAINING': 15,
    'HIDDEN_LINK_PATTERN': 40,
    'SUPPORT_NOT_LINKING_PILLAR': 25,
    'SAME_TARGET_TOO_MANY': 12,
    'HIGH_LINK_DENSITY': 12,
    'LOW_VALUE_LINK': 10,
}

BONUSES = {
    'GOOD_MATCH': 8,
    'PARTIAL_MATCH': 4,
    'PILLAR_SUPPORT_OK': 6,
    'PILLAR_DISTRIBUTION_OK': 4,
}

SPAM_WEIGHTS = {
    'generic': 20,
    'too_short': 10,
    'over_optimized': 25,
    'chaining': 20,
    'same_target': 15,
    'density': 20,
    'generic_ratio': 15,
}

SPAM_REASON_THRESHOLD = 40
SPAM_HIGH_THRESHOLD = 70
SUGGESTED_ANCHOR_MAX_LENGTH = 90
# Shorter normalized contexts are too weak to group links by
CONTEXT_GROUP_MIN_LENGTH = 20
MAX_TARGET_ENTITIES = 10


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return min(100, max(0, round_half_up(value)))


@dataclass(frozen=True)
class LinkSignals:
    """Cross-occurrence counters for one link."""
    anchor_duplicate_count: int = 1
    anchor_duplicate_source_count: int = 1
    same_target_count: int = 1
    context_group_count: int = 1
    link_density: float = 0.0
    internal_count: int = 0
    generic_anchor_ratio: float = 0.0


@dataclass(frozen=True)
class AuditInput:
    anchor_text: str
    context_snippet: str = ''
    source_role: Optional[str] = None
    target_role: Optional[str] = None
    hierarchy_violation: Optional[str] = None
    target_title: str = ''
    target_keyword: Optional[str] = None
    target_entities: Tuple[str, ...] = ()
    support_missing_pillar: bool = False
    signals: LinkSignals = LinkSignals()


@dataclass(frozen=True)
class DeterministicAudit:
    score: int
    label: str
    reasons: Tuple[str, ...]
    suggested_anchor: Optional[str]
    mismatch: bool
    spam_risk: int
    has_critical: bool
    has_warning: bool


class OccurrenceCounters:
    """
    Per-silo counters over internal occurrences, keyed by typed tuples:
    (source, target, anchor), (source, anchor), (source, target),
    (source, context group) and per-source totals.
    """

    def __init__(self, occurrences: Iterable[OccurrenceRecord], word_counts: Dict[int, int],
                 lexicon: Lexicon = None):
        self.lexicon = lexicon or get_lexicon()
        self.word_counts = word_counts
        self.anchor_per_target = Counter()
        self.anchor_per_source = Counter()
        self.pair = Counter()
        self.context_group = Counter()
        self.internal_per_source = Counter()
        self.generic_per_source = Counter()

        for occ in occurrences:
            anchor = normalize(occ.anchor_text)
            self.anchor_per_target[(occ.source_page_id, occ.target_page_id, anchor)] += 1
            self.anchor_per_source[(occ.source_page_id, anchor)] += 1
            self.pair[(occ.source_page_id, occ.target_page_id)] += 1
            self.context_group[self.context_key(occ)] += 1
            self.internal_per_source[occ.source_page_id] += 1
            if is_generic_anchor(occ.anchor_text, self.lexicon):
                self.generic_per_source[occ.source_page_id] += 1

    @staticmethod
    def context_key(occ: OccurrenceRecord) -> Tuple:
        context = normalize(occ.context_snippet)
        if len(context) >= CONTEXT_GROUP_MIN_LENGTH:
            return (occ.source_page_id, context)
        return (occ.source_page_id, occ.id)

    def signals_for(self, occ: OccurrenceRecord) -> LinkSignals:
        anchor = normalize(occ.anchor_text)
        internal = self.internal_per_source[occ.source_page_id]
        words = self.word_counts.get(occ.source_page_id, 0)
        density = internal / (words / 100) if words > 0 else float(internal)
        return LinkSignals(
            anchor_duplicate_count=self.anchor_per_target[(occ.source_page_id, occ.target_page_id, anchor)] or 1,
            anchor_duplicate_source_count=self.anchor_per_source[(occ.source_page_id, anchor)] or 1,
            same_target_count=self.pair[(occ.source_page_id, occ.target_page_id)] or 1,
            context_group_count=self.context_group[self.context_key(occ)] or 1,
            link_density=density,
            internal_count=internal,
            generic_anchor_ratio=(self.generic_per_source[occ.source_page_id] / internal) if internal else 0.0,
        )


def build_suggested_anchor(target_title: Optional[str], target_keyword: Optional[str]) -> Optional[str]:
    base = (target_keyword or target_title or '').strip()
    if not base:
        return None
    return base[:SUGGESTED_ANCHOR_MAX_LENGTH]


def is_hidden_anchor(anchor_text: str) -> bool:
    return len(anchor_text.strip()) <= 1 or anchor_text in PLACEHOLDER_ANCHORS


def score_link(data: AuditInput, lexicon: Lexicon = None) -> DeterministicAudit:
    """Deterministic verdict for one link. Pure: same input, same output."""
    lexicon = lexicon or get_lexicon()
    signals = data.signals
    reasons = []
    score = 100

    def penalize(code):
        nonlocal score
        score -= PENALTIES[code]
        reasons.append(code)

    anchor_text = data.anchor_text or ''
    anchor_words = extract_keywords(anchor_text, lexicon)
    target_words = extract_keywords(
        ' '.join(filter(None, [data.target_title, data.target_keyword, *data.target_entities[:MAX_TARGET_ENTITIES]])),
        lexicon,
    )
    context_words = extract_keywords(data.context_snippet, lexicon)

    overlap_anchor = intersect_count(anchor_words, target_words)
    overlap_context = intersect_count(context_words, target_words)

    generic = is_generic_anchor(anchor_text, lexicon) or not anchor_words
    if generic:
        penalize('ANCHOR_GENERIC')

    too_short = len(anchor_words) <= 2 and overlap_anchor == 0
    if too_short:
        penalize('ANCHOR_TOO_SHORT')

    mismatch = bool(target_words) and overlap_anchor == 0 and overlap_context == 0
    if mismatch:
        penalize('MISMATCH_TOPIC')

    if data.hierarchy_violation:
        penalize('HIERARCHY_VIOLATION')

    if not generic and len(anchor_words) <= 3 and overlap_anchor == 0:
        penalize('ANCHOR_VAGUE')

    over_optimized = signals.anchor_duplicate_source_count >= 3 or signals.anchor_duplicate_count >= 3
    if over_optimized:
        penalize('OVER_OPTIMIZED_ANCHOR')

    chaining = signals.context_group_count >= 3
    if chaining:
        penalize('LINK_CHAINING')

    if is_hidden_anchor(anchor_text):
        penalize('HIDDEN_LINK_PATTERN')

    if data.support_missing_pillar:
        penalize('SUPPORT_NOT_LINKING_PILLAR')

    same_target = signals.same_target_count >= 4
    if same_target:
        penalize('SAME_TARGET_TOO_MANY')

    high_density = signals.link_density >= 4 and signals.internal_count >= 6
    if high_density:
        penalize('HIGH_LINK_DENSITY')

    if (data.source_role == SUPPORT and data.target_role == SUPPORT
            and overlap_anchor == 0 and overlap_context == 0):
        penalize('LOW_VALUE_LINK')

    if overlap_anchor >= 2:
        score += BONUSES['GOOD_MATCH']
        reasons.append('GOOD_MATCH')
    elif overlap_anchor == 1:
        score += BONUSES['PARTIAL_MATCH']
        reasons.append('PARTIAL_MATCH')

    if data.source_role == SUPPORT and data.target_role == PILLAR:
        score += BONUSES['PILLAR_SUPPORT_OK']
        reasons.append('PILLAR_SUPPORT_OK')

    if data.source_role == PILLAR and data.target_role == SUPPORT:
        score += BONUSES['PILLAR_DISTRIBUTION_OK']
        reasons.append('PILLAR_DISTRIBUTION_OK')

    spam_risk = clamp_score(sum([
        SPAM_WEIGHTS['generic'] if generic else 0,
        SPAM_WEIGHTS['too_short'] if too_short else 0,
        SPAM_WEIGHTS['over_optimized'] if over_optimized else 0,
        SPAM_WEIGHTS['chaining'] if chaining else 0,
        SPAM_WEIGHTS['same_target'] if same_target else 0,
        SPAM_WEIGHTS['density'] if high_density else 0,
        SPAM_WEIGHTS['generic_ratio']
        if signals.generic_anchor_ratio >= 0.3 and signals.internal_count >= 6 else 0,
    ]))
    if spam_risk >= SPAM_REASON_THRESHOLD:
        reasons.append('POTENTIAL_SPAM_PATTERN')
        score -= 20 if spam_risk >= SPAM_HIGH_THRESHOLD else 10

    score = clamp_score(score)
    unique_reasons = tuple(dict.fromkeys(reasons))
    has_critical = any(r in CRITICAL_REASONS for r in unique_reasons) or spam_risk >= SPAM_HIGH_THRESHOLD
    has_warning = any(r in WARNING_REASONS for r in unique_reasons)
    descriptive = len(anchor_words) >= 3 and overlap_anchor >= 1

    if has_critical:
        label = 'WEAK'
    elif has_warning:
        label = 'OK'
    elif score >= 80 and descriptive and overlap_context >= 1:
        label = 'STRONG'
    else:
        label = 'OK'

    return DeterministicAudit(
        score=score,
        label=label,
        reasons=unique_reasons,
        suggested_anchor=build_suggested_anchor(data.target_title, data.target_keyword),
        mismatch=mismatch,
        spam_risk=spam_risk,
        has_critical=has_critical,
        has_warning=has_warning,
    )
