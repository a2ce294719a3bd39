"""
Merge a deterministic link audit with an optional advisor suggestion and pick
the corrective action.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .scoring import DeterministicAudit, clamp_score, round_half_up

ACTION_KEEP = 'KEEP'
ACTION_CHANGE_ANCHOR = 'CHANGE_ANCHOR'
ACTION_CHANGE_TARGET = 'CHANGE_TARGET'
ACTION_REMOVE_LINK = 'REMOVE_LINK'
ACTION_ADD_INTERNAL_LINK = 'ADD_INTERNAL_LINK'

# First matching group wins
ACTION_PRIORITY = (
    (ACTION_CHANGE_TARGET, ('HIERARCHY_VIOLATION',)),
    (ACTION_REMOVE_LINK, (
        'HIDDEN_LINK_PATTERN', 'LINK_CHAINING', 'OVER_OPTIMIZED_ANCHOR',
        'HIGH_LINK_DENSITY', 'SAME_TARGET_TOO_MANY', 'POTENTIAL_SPAM_PATTERN',
    )),
    (ACTION_CHANGE_TARGET, ('MISMATCH_TOPIC', 'LOW_VALUE_LINK')),
    (ACTION_ADD_INTERNAL_LINK, ('SUPPORT_NOT_LINKING_PILLAR',)),
    (ACTION_CHANGE_ANCHOR, ('ANCHOR_GENERIC', 'ANCHOR_TOO_SHORT', 'ANCHOR_VAGUE')),
)

MAX_SCORE_WITH_CRITICAL = 49


@dataclass(frozen=True)
class MergedAudit:
    score: int
    label: str
    reasons: Tuple[str, ...]
    suggested_anchor: Optional[str]
    note: Optional[str]
    mismatch: bool
    spam_risk: int
    intent_match: Optional[int]
    has_critical: bool
    has_warning: bool


def _intent(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def merge_audit(base: DeterministicAudit, advice: Optional[Dict[str, Any]] = None) -> MergedAudit:
    """
    Combine the deterministic verdict with an advisor suggestion
    (suggested_anchor, suggestion_note, coherence_note, remove_link_if,
    intent_match). Critical reasons always win over the advice.
    """
    advice = advice or {}

    suggested = advice.get('suggested_anchor')
    if isinstance(suggested, (list, tuple)):
        suggested_anchor = ' | '.join(str(item) for item in suggested if item) or base.suggested_anchor
    else:
        suggested_anchor = suggested or base.suggested_anchor

    note_parts = [
        advice.get('suggestion_note'),
        advice.get('coherence_note'),
        f"Remove if: {advice['remove_link_if']}" if advice.get('remove_link_if') else None,
    ]
    note = ' '.join(part for part in note_parts if part) or None

    intent = _intent(advice.get('intent_match'))
    score = base.score
    if intent is not None and not base.has_critical:
        score = clamp_score(score + round_half_up((intent - 50) / 10))

    if base.has_critical:
        label = 'WEAK'
        score = min(score, MAX_SCORE_WITH_CRITICAL)
    elif base.has_warning and score >= 80:
        label = 'OK'
    elif not base.has_warning and score >= 80:
        label = 'STRONG'
    elif score < 50:
        label = 'WEAK'
    else:
        label = 'OK'

    return MergedAudit(
        score=score,
        label=label,
        reasons=base.reasons,
        suggested_anchor=suggested_anchor,
        note=note,
        mismatch=base.mismatch,
        spam_risk=base.spam_risk,
        intent_match=round_half_up(intent) if intent is not None else None,
        has_critical=base.has_critical,
        has_warning=base.has_warning,
    )


def pick_action(reasons) -> str:
    present = set(reasons)
    for action, codes in ACTION_PRIORITY:
        if present.intersection(codes):
            return action
    return ACTION_KEEP


def build_recommendation(action: str, suggested_anchor: Optional[str] = None) -> str:
    if action == ACTION_CHANGE_ANCHOR:
        if suggested_anchor:
            return f'Use the suggested anchor: "{suggested_anchor}".'
        return "Replace the anchor with a term that describes the target page."
    if action == ACTION_CHANGE_TARGET:
        return "Point this link to the most relevant page of the silo (ideally the Pillar)."
    if action == ACTION_REMOVE_LINK:
        return "Remove or reduce this link to avoid excess or a spam pattern."
    if action == ACTION_ADD_INTERNAL_LINK:
        return "Add a link from this Support page to the Pillar with a descriptive anchor."
    return "Link OK. Keep it."


@dataclass(frozen=True)
class LinkAuditResult:
    """Final audit of one occurrence, as stored and returned."""
    occurrence_id: str
    target_page_id: Optional[int]
    score: int
    label: str
    reasons: Tuple[str, ...]
    suggested_anchor: Optional[str]
    note: Optional[str]
    action: str
    recommendation: str
    spam_risk: int
    intent_match: Optional[int]
    mismatch: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'occurrence_id': self.occurrence_id,
            'target_page_id': self.target_page_id,
            'score': self.score,
            'label': self.label,
            'reasons': list(self.reasons),
            'suggested_anchor': self.suggested_anchor,
            'note': self.note,
            'action': self.action,
            'recommendation': self.recommendation,
            'spam_risk': self.spam_risk,
            'intent_match': self.intent_match,
            'mismatch': self.mismatch,
        }


def resolve_link_audit(occurrence_id: str, target_page_id: Optional[int], base: DeterministicAudit,
                       advice: Optional[Dict[str, Any]] = None) -> LinkAuditResult:
    merged = merge_audit(base, advice)
    action = pick_action(merged.reasons)
    return LinkAuditResult(
        occurrence_id=occurrence_id,
        target_page_id=target_page_id,
        score=merged.score,
        label=merged.label,
        reasons=merged.reasons,
        suggested_anchor=merged.suggested_anchor,
        note=merged.note,
        action=action,
        recommendation=build_recommendation(action, merged.suggested_anchor),
        spam_risk=merged.spam_risk,
        intent_match=merged.intent_match,
        mismatch=merged.mismatch,
    )
