"""
Semantic profiles for link suggestions.

Each page gets a tf-idf weighted term vector plus two term sets: "core"
(title + keyword + entities) and "related" (the heaviest remaining terms).
IDF is computed over every page of the silo; profiles exist only for the
candidate targets.
"""
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .lexicon import Lexicon, get_lexicon
from .records import PageRecord
from .text import strip_html, tokenize

RELATED_TERMS = 12
COSINE_WEIGHT = 0.5
CORE_WEIGHT = 0.35
RELATED_WEIGHT = 0.15


@dataclass(frozen=True)
class SemanticProfile:
    page_id: Optional[int]
    weights: Dict[str, float] = field(default_factory=dict)
    tokens: FrozenSet[str] = frozenset()
    core: FrozenSet[str] = frozenset()
    related: FrozenSet[str] = frozenset()

    @property
    def norm(self) -> float:
        return math.sqrt(sum(w * w for w in self.weights.values()))

    @property
    def topic_terms(self) -> FrozenSet[str]:
        return self.core | self.related


def compute_idf(documents: Iterable[Iterable[str]]) -> Tuple[Dict[str, float], int]:
    """idf(t) = log((N + 1) / (df(t) + 1)) + 1 over the given token documents."""
    doc_freq = Counter()
    total = 0
    for tokens in documents:
        total += 1
        doc_freq.update(set(tokens))
    idf = {term: math.log((total + 1) / (df + 1)) + 1 for term, df in doc_freq.items()}
    return idf, total


def cosine(a: SemanticProfile, b: SemanticProfile) -> float:
    if not a.weights or not b.weights:
        return 0.0
    smaller, larger = (a, b) if len(a.weights) <= len(b.weights) else (b, a)
    dot = sum(w * larger.weights.get(term, 0.0) for term, w in smaller.weights.items())
    denominator = a.norm * b.norm
    return dot / denominator if denominator else 0.0


def coverage(target_terms: FrozenSet[str], article_tokens: FrozenSet[str]) -> float:
    if not target_terms:
        return 0.0
    return len(target_terms & article_tokens) / len(target_terms)


class SemanticIndex:
    """
    Profiles for every candidate target plus the article being edited.

    ``corpus`` is the full page set of the silo and defines the IDF table;
    it defaults to ``pages``. Only ``pages`` get profiles.
    """

    def __init__(self, pages: Sequence[PageRecord], article_core: str, article_body: str,
                 lexicon: Lexicon = None, corpus: Optional[Sequence[PageRecord]] = None):
        self.lexicon = lexicon or get_lexicon()

        documents = {}
        cores = {}
        for page in list(pages) + list(corpus or []):
            if page.id in documents:
                continue
            core_text = ' '.join(filter(None, [page.title, page.target_keyword, *page.entities]))
            cores[page.id] = tokenize(core_text, self.lexicon)
            documents[page.id] = cores[page.id] + tokenize(strip_html(page.content), self.lexicon)

        article_core_tokens = tokenize(article_core, self.lexicon)
        article_tokens = article_core_tokens + tokenize(article_body, self.lexicon)

        idf_ids = [page.id for page in (corpus if corpus is not None else pages)]
        self.idf, self.document_count = compute_idf(documents[page_id] for page_id in idf_ids)
        self.profiles = {
            page.id: self._profile(page.id, documents[page.id], cores[page.id])
            for page in pages
        }
        self.article = self._profile(None, article_tokens, article_core_tokens)

    def term_weight(self, term: str) -> float:
        """IDF of a term; unseen terms weigh as if they appeared in no document."""
        return self.idf.get(term, math.log(self.document_count + 1) + 1)

    def _profile(self, page_id, tokens: List[str], core_tokens: List[str]) -> SemanticProfile:
        tf = Counter(tokens)
        weights = {term: count * self.term_weight(term) for term, count in tf.items()}
        core = frozenset(core_tokens)
        ranked = sorted(
            ((term, weight) for term, weight in weights.items() if term not in core),
            key=lambda item: (-item[1], item[0]),
        )
        return SemanticProfile(
            page_id=page_id,
            weights=weights,
            tokens=frozenset(tf),
            core=core,
            related=frozenset(term for term, _ in ranked[:RELATED_TERMS]),
        )

    def similarity(self, page_id: int) -> float:
        """0-100 similarity between the article and one target page."""
        target = self.profiles.get(page_id)
        if target is None:
            return 0.0
        return 100 * (
            COSINE_WEIGHT * cosine(self.article, target)
            + CORE_WEIGHT * coverage(target.core, self.article.tokens)
            + RELATED_WEIGHT * coverage(target.related, self.article.tokens)
        )
