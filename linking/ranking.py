"""
Candidate Ranker & Diversifier

Blends semantic, hierarchy, keyword and anchor scores into one ranking, keeps
the result usable when few candidates survive, and spreads the final list
across document positions and targets.
"""
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Set

from silos.hierarchy import AUX, PILLAR, SUPPORT

from .anchors import AnchorCandidate, BUCKETS, BUCKET_START
from .records import PageRecord
from .semantic import SemanticIndex
from .text import clean_anchor, normalize, tokenize

SEMANTIC_WEIGHT = 0.58
HIERARCHY_WEIGHT = 0.23
KEYWORD_WEIGHT = 0.08
ANCHOR_WEIGHT = 0.11
ANCHOR_SCORE_CAP = 40
ALREADY_LINKED_PENALTY = 30
RELAXED_PENALTY = 6

SCORE_FLOOR = 25
RELAXED_SCORE_FLOOR = 12
MAX_PER_TARGET = 4
SHORTLIST_SIZE = 20
FALLBACK_ANCHOR_WORDS = 7

ORACLE_SCORE_WEIGHT = 0.72
ORACLE_CONFIDENCE_WEIGHT = 28
DEFAULT_CONFIDENCE = 0.65

ROLE_BASE_SCORE = {PILLAR: 24, SUPPORT: 16, AUX: 10}
UNASSIGNED_BASE_SCORE = 8
ROLE_LABELS = {PILLAR: 'Pillar page', SUPPORT: 'Support page', AUX: 'Aux page'}


@dataclass(frozen=True)
class RankedCandidate:
    candidate_id: str
    target_page_id: int
    title: str
    url: str
    role: Optional[str]
    anchor_text: str
    position_bucket: str
    semantic_score: float
    hierarchy_score: float
    keyword_score: float
    anchor_score: float
    final_score: float
    already_linked: bool = False
    relaxed: bool = False
    fallback: bool = False
    reason: str = ''
    source: str = 'heuristic'
    confidence: Optional[float] = None

    @property
    def normalized_anchor(self) -> str:
        return normalize(self.anchor_text)

    def to_dict(self) -> Dict:
        return {
            'candidate_id': self.candidate_id,
            'target_page_id': self.target_page_id,
            'title': self.title,
            'url': self.url,
            'role': self.role,
            'anchor_text': self.anchor_text,
            'position_bucket': self.position_bucket,
            'score': self.final_score,
            'semantic_score': self.semantic_score,
            'hierarchy_score': self.hierarchy_score,
            'keyword_score': self.keyword_score,
            'anchor_score': self.anchor_score,
            'already_linked': self.already_linked,
            'relaxed': self.relaxed,
            'fallback': self.fallback,
            'reason': self.reason,
            'source': self.source,
            'confidence': self.confidence,
        }


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def hierarchy_score(source_role: Optional[str], target_role: Optional[str]) -> float:
    base = ROLE_BASE_SCORE.get(target_role, UNASSIGNED_BASE_SCORE)
    boost = 0
    if source_role == SUPPORT and target_role == PILLAR:
        boost = 14
    elif source_role == PILLAR and target_role == SUPPORT:
        boost = 10
    elif source_role == AUX and target_role == PILLAR:
        boost = 10
    return float(base + boost)


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def final_score(semantic: float, hierarchy: float, keyword: float, anchor: float,
                already_linked: bool = False, relaxed: bool = False) -> float:
    score = (
        SEMANTIC_WEIGHT * semantic
        + HIERARCHY_WEIGHT * hierarchy
        + KEYWORD_WEIGHT * keyword
        + ANCHOR_WEIGHT * clamp(anchor, 0, ANCHOR_SCORE_CAP)
        - (ALREADY_LINKED_PENALTY if already_linked else 0)
        - (RELAXED_PENALTY if relaxed else 0)
    )
    return round(clamp(score, 0, 100), 1)


def build_reason(role: Optional[str], semantic: float, already_linked: bool,
                 relaxed: bool, fallback: bool) -> str:
    label = ROLE_LABELS.get(role, 'page')
    if already_linked:
        return f"There is already a link to this {label}. Kept for high semantic affinity ({semantic:.0f}%)."
    if fallback:
        return f"No natural phrase found in the text for this {label}; the target keyword is used as anchor."
    reason = f"High semantic affinity ({semantic:.0f}%) with a good hierarchy fit ({label})."
    if relaxed:
        reason += " Lower confidence anchor."
    return reason


def score_candidates(source_role: Optional[str], targets: Sequence[PageRecord], roles: Dict[int, Optional[str]],
                     index: SemanticIndex, anchors: Dict[int, List[AnchorCandidate]],
                     article_keyword: str, linked_ids: Set[int]) -> List[RankedCandidate]:
    """One scored entry per (target, anchor) pair, plus keyword fallbacks."""
    article_keyword_tokens = tokenize(article_keyword)
    scored = []
    for target in targets:
        role = roles.get(target.id)
        semantic = round(index.similarity(target.id), 1)
        hierarchy = hierarchy_score(source_role, role)
        keyword = round(jaccard(article_keyword_tokens, tokenize(target.keyword_or_title)) * 100, 1)
        linked = target.id in linked_ids

        options = list(anchors.get(target.id) or [])
        if not options:
            fallback_anchor = clean_anchor(target.keyword_or_title, FALLBACK_ANCHOR_WORDS)
            if not fallback_anchor:
                continue
            scored.append(RankedCandidate(
                candidate_id='',
                target_page_id=target.id,
                title=target.title,
                url=target.path,
                role=role,
                anchor_text=fallback_anchor,
                position_bucket=BUCKET_START,
                semantic_score=semantic,
                hierarchy_score=hierarchy,
                keyword_score=keyword,
                anchor_score=0.0,
                final_score=final_score(semantic, hierarchy, keyword, 0, linked),
                already_linked=linked,
                fallback=True,
                reason=build_reason(role, semantic, linked, False, True),
            ))
            continue

        for option in options:
            scored.append(RankedCandidate(
                candidate_id='',
                target_page_id=target.id,
                title=target.title,
                url=target.path,
                role=role,
                anchor_text=option.text,
                position_bucket=option.bucket,
                semantic_score=semantic,
                hierarchy_score=hierarchy,
                keyword_score=keyword,
                anchor_score=option.score,
                final_score=final_score(semantic, hierarchy, keyword, option.score, linked, option.relaxed),
                already_linked=linked,
                relaxed=option.relaxed,
                reason=build_reason(role, semantic, linked, option.relaxed, False),
            ))
    return sorted(scored, key=_rank_key)


def _rank_key(candidate: RankedCandidate):
    return (-candidate.final_score, candidate.target_page_id, candidate.normalized_anchor)


def apply_floors(candidates: Sequence[RankedCandidate], required: int,
                 uncovered_targets: Iterable[int]) -> List[RankedCandidate]:
    """
    Keep candidates above the score floor; lower the floor when too few
    survive, then make sure every uncovered target keeps its best candidate.
    """
    pool = [c for c in candidates if c.final_score >= SCORE_FLOOR]
    if len(pool) < required:
        pool = [c for c in candidates if c.final_score >= RELAXED_SCORE_FLOOR]

    represented = {c.target_page_id for c in pool}
    for target_id in uncovered_targets:
        if target_id in represented:
            continue
        best = next((c for c in candidates if c.target_page_id == target_id), None)
        if best is not None:
            pool.append(best)
            represented.add(target_id)
    return sorted(pool, key=_rank_key)


def diversify(candidates: Sequence[RankedCandidate], limit: int,
              uncovered_targets: Iterable[int] = ()) -> List[RankedCandidate]:
    """
    Best candidate per position bucket first, then one per uncovered target,
    then fill by score. At most MAX_PER_TARGET per target, never the same
    (anchor, target) twice, and no repeated anchor unless the target would
    otherwise go uncovered.
    """
    ranked = sorted(candidates, key=_rank_key)
    selected = []
    per_target = Counter()
    anchors = set()
    pairs = set()

    def try_add(candidate):
        if len(selected) >= limit:
            return False
        pair = (candidate.normalized_anchor, candidate.target_page_id)
        if pair in pairs or per_target[candidate.target_page_id] >= MAX_PER_TARGET:
            return False
        if candidate.normalized_anchor in anchors and per_target[candidate.target_page_id] > 0:
            return False
        selected.append(candidate)
        pairs.add(pair)
        anchors.add(candidate.normalized_anchor)
        per_target[candidate.target_page_id] += 1
        return True

    for bucket in BUCKETS:
        for candidate in ranked:
            if candidate.position_bucket == bucket and not candidate.fallback and try_add(candidate):
                break

    for target_id in uncovered_targets:
        if per_target[target_id]:
            continue
        for candidate in ranked:
            if candidate.target_page_id == target_id and try_add(candidate):
                break

    for candidate in ranked:
        if len(selected) >= limit:
            break
        try_add(candidate)

    ordered = sorted(selected, key=_rank_key)
    return [replace(c, candidate_id=f"c{position}") for position, c in enumerate(ordered, start=1)]


def apply_rerank(shortlist: Sequence[RankedCandidate], records: Sequence[Dict],
                 limit: int) -> List[RankedCandidate]:
    """
    Reorder the shortlist with validated re-ranker records. Records may only
    point at offered candidate ids and may only swap the anchor for another
    anchor already offered for the same target. Heuristic order fills the
    remaining slots.
    """
    by_id = {c.candidate_id: c for c in shortlist}
    offered_anchors = {}
    for c in shortlist:
        offered = offered_anchors.setdefault(c.target_page_id, {})
        offered.setdefault(c.normalized_anchor, (c.anchor_text, c.position_bucket))

    result = []
    chosen_ids = set()
    pairs = set()
    per_target = Counter()

    def take(candidate, original_id):
        pair = (candidate.normalized_anchor, candidate.target_page_id)
        if pair in pairs or per_target[candidate.target_page_id] >= MAX_PER_TARGET:
            return
        result.append(candidate)
        chosen_ids.add(original_id)
        pairs.add(pair)
        per_target[candidate.target_page_id] += 1

    for record in records:
        if len(result) >= limit:
            break
        candidate_id = record.get('candidate_id')
        candidate = by_id.get(candidate_id)
        if candidate is None or candidate_id in chosen_ids:
            continue

        confidence = record.get('confidence')
        confidence = clamp(float(confidence), 0, 1) if confidence is not None else DEFAULT_CONFIDENCE
        anchor, bucket = candidate.anchor_text, candidate.position_bucket
        proposed = normalize(record.get('anchor_text') or '')
        if proposed and proposed in offered_anchors.get(candidate.target_page_id, {}):
            anchor, bucket = offered_anchors[candidate.target_page_id][proposed]

        take(replace(
            candidate,
            anchor_text=anchor,
            position_bucket=bucket,
            final_score=round(clamp(candidate.final_score * ORACLE_SCORE_WEIGHT
                                    + confidence * ORACLE_CONFIDENCE_WEIGHT, 0, 100), 1),
            reason=(record.get('reason') or '').strip() or candidate.reason,
            source='ai',
            confidence=confidence,
        ), candidate_id)

    for candidate in shortlist:
        if len(result) >= limit:
            break
        if candidate.candidate_id not in chosen_ids:
            take(candidate, candidate.candidate_id)
    return result
