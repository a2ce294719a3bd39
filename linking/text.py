"""
Text helpers shared by the audit scorer, the semantic profiles and the
anchor extractor.
"""
import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup

from .lexicon import Lexicon, get_lexicon

_NON_ALNUM = re.compile(r'[^a-z0-9\s]')
_WHITESPACE = re.compile(r'\s+')
_SENTENCE = re.compile(r'[^.!?\n]+[.!?]*')


@dataclass(frozen=True)
class Sentence:
    text: str
    start: int
    end: int


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip diacritics, replace anything but [a-z0-9] with spaces."""
    if not text:
        return ''
    decomposed = unicodedata.normalize('NFD', str(text).lower())
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(' ', _NON_ALNUM.sub(' ', stripped)).strip()


def strip_html(html: Optional[str]) -> str:
    """Visible text of an HTML fragment (scripts and styles removed)."""
    if not html:
        return ''
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(['script', 'style']):
        tag.decompose()
    return _WHITESPACE.sub(' ', soup.get_text(' ')).strip()


def count_words(text: Optional[str]) -> int:
    normalized = normalize(text)
    return len(normalized.split(' ')) if normalized else 0


def stem(token: str, lexicon: Lexicon = None) -> str:
    """
    Light suffix stripping. Not a linguistic stemmer: it only needs to fold
    plurals and common derivations onto the same key.
    """
    lexicon = lexicon or get_lexicon()
    for suffix, replacement in lexicon.plural_rewrites:
        if token.endswith(suffix) and len(token) - len(suffix) >= 3:
            token = token[:-len(suffix)] + replacement
            break
    for suffix in sorted(lexicon.suffix_rules, key=len, reverse=True):
        if token.endswith(suffix) and len(token) - len(suffix) >= 3:
            return token[:-len(suffix)]
    return token


def tokenize(text: Optional[str], lexicon: Lexicon = None, min_length: int = 3,
             remove_stop_words: bool = True, stemmed: bool = True) -> List[str]:
    lexicon = lexicon or get_lexicon()
    tokens = []
    for token in normalize(text).split(' '):
        if len(token) < min_length:
            continue
        if remove_stop_words and token in lexicon.stop_words:
            continue
        tokens.append(stem(token, lexicon) if stemmed else token)
    return tokens


def extract_keywords(text: Optional[str], lexicon: Lexicon = None) -> List[str]:
    """Unstemmed keyword tokens used by the link audit (>= 3 chars, no filler words)."""
    lexicon = lexicon or get_lexicon()
    return [
        token for token in normalize(text).split(' ')
        if len(token) >= 3 and token not in lexicon.audit_stop_words
    ]


def intersect_count(a: Iterable[str], b: Iterable[str]) -> int:
    """How many tokens of ``a`` (with repetition) appear in ``b``."""
    a = list(a)
    b = set(b)
    if not a or not b:
        return 0
    return sum(1 for token in a if token in b)


def is_generic_anchor(anchor: Optional[str], lexicon: Lexicon = None) -> bool:
    """True when the anchor contains a generic call-to-action phrase as whole words."""
    lexicon = lexicon or get_lexicon()
    padded = f" {normalize(anchor)} "
    return any(f" {normalize(generic)} " in padded for generic in lexicon.generic_anchors)


def split_sentences(text: Optional[str]) -> List[Sentence]:
    """Sentences with their character offsets in ``text``."""
    sentences = []
    for match in _SENTENCE.finditer(text or ''):
        raw = match.group(0)
        stripped = raw.strip()
        if not stripped:
            continue
        start = match.start() + (len(raw) - len(raw.lstrip()))
        sentences.append(Sentence(text=stripped, start=start, end=start + len(stripped)))
    return sentences


def clean_anchor(value: Optional[str], max_words: int = 7) -> str:
    """Collapse whitespace and keep at most ``max_words`` words."""
    words = _WHITESPACE.sub(' ', str(value or '')).strip().split(' ')
    return ' '.join(word for word in words[:max_words] if word)
