"""
Anchor Candidate Extractor

Finds short phrases (2-7 words) already present in an article that would make
natural anchors for exactly one eligible target page.

For every sentence that is not commercial (prices, vendors, measurements) a
window slides over the words. A phrase survives when it is clean (no
punctuation, no weak opening or dangling connector, not generic, not
commercial, not over-repeated, not the target's exact title) and when it
matches its target clearly better than every other eligible target
(the discriminative margin). Targets with no strict survivor get a relaxed
pass whose candidates are flagged as lower confidence.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence

from .lexicon import Lexicon, get_lexicon
from .records import PageRecord
from .semantic import SemanticIndex
from .text import Sentence, is_generic_anchor, normalize, split_sentences, stem

logger = logging.getLogger(__name__)

MIN_WORDS = 2
MAX_WORDS = 7
MAX_ANCHOR_LENGTH = 72
MAX_PHRASE_REPEATS = 2
MIN_MEANINGFUL_TOKENS = 2
CANDIDATES_PER_TARGET = 3

STRICT_MIN_DENSITY = 0.42
STRICT_MIN_MARGIN = 0.45
STRICT_MIN_RATIO = 1.1
RELAXED_MIN_DENSITY = 0.30
RELAXED_MIN_MARGIN = 0.0
RELAXED_MIN_RATIO = 1.0

BUCKET_START = 'START'
BUCKET_MID = 'MID'
BUCKET_END = 'END'
BUCKETS = (BUCKET_START, BUCKET_MID, BUCKET_END)

_FORBIDDEN_PUNCTUATION = re.compile(r'[,:;()]')
_EDGE_PUNCTUATION = ' .!?"\'“”‘’«»'


@dataclass(frozen=True)
class AnchorCandidate:
    target_page_id: int
    text: str
    normalized: str
    bucket: str
    score: float
    overlap: int
    density: float
    margin: float
    relaxed: bool = False
    offset: int = 0


@dataclass(frozen=True)
class _Phrase:
    text: str
    normalized: str
    tokens: FrozenSet[str]
    bucket: str
    offset: int


def bucket_for_offset(offset: int, length: int) -> str:
    if not length:
        return BUCKET_START
    ratio = offset / length
    if ratio < 0.33:
        return BUCKET_START
    if ratio < 0.66:
        return BUCKET_MID
    return BUCKET_END


def is_commercial_sentence(sentence: str, lexicon: Lexicon) -> bool:
    lowered = sentence.lower()
    normalized = normalize(sentence)
    return bool(
        lexicon.commercial_pattern.search(lowered)
        or lexicon.commercial_pattern.search(normalized)
        or lexicon.unit_pattern.search(lowered)
    )


def meaningful_tokens(normalized_words: Sequence[str], lexicon: Lexicon) -> List[str]:
    return [
        stem(word, lexicon) for word in normalized_words
        if len(word) >= 3 and word not in lexicon.stop_words
    ]


class AnchorExtractor:
    """
    Extraction state for one article against a set of eligible targets.

    ``index`` supplies the target profiles and the term weights (rarer terms
    weigh more).
    """

    def __init__(self, text: str, targets: Sequence[PageRecord], index: SemanticIndex,
                 lexicon: Lexicon = None):
        self.text = text or ''
        self.targets = list(targets)
        self.index = index
        self.lexicon = lexicon or get_lexicon()
        self._article = f" {normalize(self.text)} "
        self._repeat_cache = {}

    def _repeats(self, normalized_phrase: str) -> int:
        if normalized_phrase not in self._repeat_cache:
            self._repeat_cache[normalized_phrase] = self._article.count(f" {normalized_phrase} ")
        return self._repeat_cache[normalized_phrase]

    def _token_weight(self, token: str) -> float:
        # Longer tokens carry more meaning than short ones at equal rarity
        return self.index.term_weight(token) * (1 + min(len(token), 12) / 12)

    def _weighted(self, tokens: FrozenSet[str], terms: FrozenSet[str]) -> float:
        return sum(self._token_weight(token) for token in tokens & terms)

    def phrases(self) -> List[_Phrase]:
        """Every clean 2-7 word phrase of the article (target independent filters)."""
        lexicon = self.lexicon
        connectors = lexicon.connectors | lexicon.stop_words
        length = len(self.text)
        found = []
        for sentence in split_sentences(self.text):
            if is_commercial_sentence(sentence.text, lexicon):
                continue
            found.extend(self._sentence_phrases(sentence, connectors, length))
        return found

    def _sentence_phrases(self, sentence: Sentence, connectors, length: int) -> List[_Phrase]:
        lexicon = self.lexicon
        words = sentence.text.split()
        bucket = bucket_for_offset(sentence.start, length)
        phrases = []
        for start in range(len(words)):
            for size in range(MIN_WORDS, MAX_WORDS + 1):
                if start + size > len(words):
                    break
                literal = ' '.join(words[start:start + size]).strip(_EDGE_PUNCTUATION)
                if not literal or len(literal) > MAX_ANCHOR_LENGTH:
                    continue
                if _FORBIDDEN_PUNCTUATION.search(literal):
                    continue
                normalized = normalize(literal)
                normalized_words = normalized.split(' ') if normalized else []
                if len(normalized_words) < MIN_WORDS:
                    continue
                first, last = normalized_words[0], normalized_words[-1]
                if first in lexicon.weak_prefixes or first in connectors or last in connectors:
                    continue
                if is_generic_anchor(normalized, lexicon):
                    continue
                if any(word in lexicon.commercial_terms for word in normalized_words):
                    continue
                if lexicon.unit_pattern.search(normalized):
                    continue
                tokens = meaningful_tokens(normalized_words, lexicon)
                if len(tokens) < MIN_MEANINGFUL_TOKENS:
                    continue
                if self._repeats(normalized) > MAX_PHRASE_REPEATS:
                    continue
                phrases.append(_Phrase(
                    text=literal,
                    normalized=normalized,
                    tokens=frozenset(tokens),
                    bucket=bucket,
                    offset=sentence.start,
                ))
        return phrases

    def extract(self, per_target: int = CANDIDATES_PER_TARGET) -> Dict[int, List[AnchorCandidate]]:
        """Best candidates per target id (possibly empty lists)."""
        phrases = self.phrases()
        topic_terms = {}
        all_terms = {}
        titles = {}
        for target in self.targets:
            profile = self.index.profiles.get(target.id)
            topic_terms[target.id] = profile.topic_terms if profile else frozenset()
            all_terms[target.id] = profile.tokens if profile else frozenset()
            titles[target.id] = normalize(target.title)

        strict = {target.id: [] for target in self.targets}
        relaxed = {target.id: [] for target in self.targets}

        for phrase in phrases:
            topic_scores = {tid: self._weighted(phrase.tokens, terms) for tid, terms in topic_terms.items()}
            semantic_scores = None
            token_count = len(phrase.tokens)

            for target in self.targets:
                if phrase.normalized == titles[target.id]:
                    continue
                overlap = len(phrase.tokens & topic_terms[target.id])
                own = topic_scores[target.id]
                competitor = max((s for tid, s in topic_scores.items() if tid != target.id), default=0.0)
                density = overlap / token_count

                if overlap and self._passes(own, competitor, density,
                                            STRICT_MIN_DENSITY, STRICT_MIN_MARGIN, STRICT_MIN_RATIO):
                    strict[target.id].append(self._candidate(target.id, phrase, overlap, density,
                                                             own - competitor, relaxed=False))
                    continue

                if semantic_scores is None:
                    semantic_scores = {tid: self._weighted(phrase.tokens, terms) for tid, terms in all_terms.items()}
                semantic_overlap = len(phrase.tokens & all_terms[target.id])
                if overlap < 1 and semantic_overlap < 2:
                    continue
                effective = max(overlap, semantic_overlap)
                relaxed_density = effective / token_count
                own_semantic = semantic_scores[target.id]
                competitor_semantic = max(
                    (s for tid, s in semantic_scores.items() if tid != target.id), default=0.0
                )
                if self._passes(own_semantic, competitor_semantic, relaxed_density,
                                RELAXED_MIN_DENSITY, RELAXED_MIN_MARGIN, RELAXED_MIN_RATIO):
                    relaxed[target.id].append(self._candidate(target.id, phrase, effective, relaxed_density,
                                                              own_semantic - competitor_semantic, relaxed=True))

        result = {}
        for target in self.targets:
            pool = strict[target.id] or relaxed[target.id]
            result[target.id] = select_per_bucket(pool, per_target)
            if not strict[target.id] and pool:
                logger.debug("Anchor extraction: relaxed candidates used for page %s", target.id)
        return result

    @staticmethod
    def _passes(own: float, competitor: float, density: float,
                min_density: float, min_margin: float, min_ratio: float) -> bool:
        if own <= 0 or density < min_density:
            return False
        if own - competitor < min_margin:
            return False
        if competitor > 0 and own / competitor < min_ratio:
            return False
        return True

    @staticmethod
    def _candidate(target_id: int, phrase: _Phrase, overlap: int, density: float,
                   margin: float, relaxed: bool) -> AnchorCandidate:
        score = 8 * overlap + 12 * density + 3 * min(max(margin, 0.0), 4.0)
        return AnchorCandidate(
            target_page_id=target_id,
            text=phrase.text,
            normalized=phrase.normalized,
            bucket=phrase.bucket,
            score=round(score, 2),
            overlap=overlap,
            density=round(density, 3),
            margin=round(margin, 3),
            relaxed=relaxed,
            offset=phrase.offset,
        )


def select_per_bucket(candidates: Sequence[AnchorCandidate], limit: int = CANDIDATES_PER_TARGET) -> List[AnchorCandidate]:
    """
    Dedupe by normalized text (highest score wins), take the best candidate
    of each position bucket, then top up by score to ``limit``.
    """
    best = {}
    for candidate in candidates:
        current = best.get(candidate.normalized)
        if current is None or candidate.score > current.score:
            best[candidate.normalized] = candidate
    ranked = sorted(best.values(), key=lambda c: (-c.score, c.offset, c.normalized))

    selected = []
    used_buckets = set()
    for candidate in ranked:
        if len(selected) >= limit:
            break
        if candidate.bucket not in used_buckets:
            used_buckets.add(candidate.bucket)
            selected.append(candidate)
    for candidate in ranked:
        if len(selected) >= limit:
            break
        if candidate not in selected:
            selected.append(candidate)
    return sorted(selected, key=lambda c: (-c.score, c.offset))


def extract_anchor_candidates(text: str, targets: Sequence[PageRecord], index: SemanticIndex,
                              lexicon: Optional[Lexicon] = None,
                              per_target: int = CANDIDATES_PER_TARGET) -> Dict[int, List[AnchorCandidate]]:
    return AnchorExtractor(text, targets, index, lexicon).extract(per_target)
