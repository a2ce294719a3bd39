"""
Language tables used by the link engine.

Everything language-specific (stop words, generic anchors, suffix rules,
commercial patterns) lives here so another language can be plugged in via
settings.LINKING_LEXICON without touching the scoring code.
"""
import re
from dataclasses import dataclass
from typing import FrozenSet, Pattern, Tuple

from django.conf import settings


@dataclass(frozen=True)
class Lexicon:
    name: str
    # Filtered out of semantic profiles and anchor candidates
    stop_words: FrozenSet[str]
    # Filtered out of audit keyword overlap (stop words + editorial filler)
    audit_stop_words: FrozenSet[str]
    generic_anchors: Tuple[str, ...]
    # Literal anchors written by the occurrence sync when a link has no text
    placeholder_anchors: Tuple[str, ...]
    weak_prefixes: FrozenSet[str]
    connectors: FrozenSet[str]
    commercial_terms: FrozenSet[str]
    commercial_pattern: Pattern
    unit_pattern: Pattern
    suffix_rules: Tuple[str, ...]
    plural_rewrites: Tuple[Tuple[str, str], ...]
    affiliate_hints: Tuple[str, ...]


_PT_BR_STOP_WORDS = frozenset({
    'de', 'da', 'do', 'das', 'dos', 'e', 'em', 'para', 'por', 'com', 'sem',
    'um', 'uma', 'uns', 'umas', 'o', 'a', 'os', 'as', 'na', 'no', 'nas', 'nos',
    'que', 'como', 'sobre', 'mais', 'menos', 'se', 'ao', 'aos', 'ainda', 'ja',
    'ou', 'tambem', 'isso', 'essa', 'esse', 'este', 'esta', 'sao', 'ser',
    'estar', 'foi', 'foram', 'tem', 'ter', 'tendo', 'pode', 'podem', 'deve',
    'devem', 'muito', 'muita', 'muitos', 'muitas', 'seu', 'sua', 'seus', 'suas',
    'quando', 'onde', 'qual', 'quais', 'pelo', 'pela', 'pelos', 'pelas', 'entre',
    'ate', 'mas', 'porque', 'voce', 'voces', 'nao', 'sim', 'bem', 'cada', 'todo',
    'toda', 'todos', 'todas', 'isso', 'aquilo', 'aquele', 'aquela', 'nesse',
    'nessa', 'neste', 'nesta', 'dele', 'dela', 'lhe', 'num', 'numa', 'the',
    'and', 'for', 'with', 'from',
})

PT_BR = Lexicon(
    name='pt-br',
    stop_words=_PT_BR_STOP_WORDS,
    audit_stop_words=_PT_BR_STOP_WORDS | frozenset({
        'melhor', 'melhores', 'guia', 'review', 'comparativo',
    }),
    generic_anchors=(
        'clique aqui', 'saiba mais', 'leia mais', 'veja mais', 'confira',
        'acesse', 'novo post', 'artigo', 'post', 'aqui', 'here', 'read more',
        'click here', 'saiba tudo', 'veja aqui',
    ),
    placeholder_anchors=('[Sem texto]', '[Imagem]'),
    weak_prefixes=frozenset({
        'clique', 'veja', 'confira', 'leia', 'saiba', 'acesse', 'aqui', 'isso',
        'este', 'esse', 'esta', 'essa', 'ele', 'ela', 'eles', 'elas', 'voce',
        'nao', 'sim', 'tambem', 'ainda', 'entao', 'assim', 'depois', 'antes',
        'alem', 'porem', 'contudo', 'muito', 'muita', 'outro', 'outra',
    }),
    connectors=frozenset({
        'de', 'da', 'do', 'das', 'dos', 'e', 'em', 'para', 'por', 'com', 'sem',
        'um', 'uma', 'o', 'a', 'os', 'as', 'na', 'no', 'nas', 'nos', 'que',
        'como', 'se', 'ao', 'aos', 'ou', 'mas', 'pelo', 'pela', 'entre', 'ate',
        'sobre', 'seu', 'sua', 'mais', 'menos', 'muito', 'quando', 'porque',
    }),
    commercial_terms=frozenset({
        'preco', 'precos', 'comprar', 'compre', 'promocao', 'desconto', 'cupom',
        'frete', 'oferta', 'ofertas', 'amazon', 'shopee', 'magalu', 'loja',
        'lojas', 'parcelas', 'reais', 'barato', 'barata',
    }),
    commercial_pattern=re.compile(
        r'(r\$\s*\d|\$\s*\d|€\s*\d|\bmercado livre\b|\bamericanas\b|\bem ate \d+x\b|\b\d+x sem juros\b)'
    ),
    unit_pattern=re.compile(
        r'\b\d+(?:[.,]\d+)?\s?(?:ml|l|kg|g|mg|cm|mm|m|w|v|mah|gb|tb|pol|polegadas|litros|gramas|watts)\b'
    ),
    suffix_rules=(
        'izacao', 'izacoes', 'izador', 'izadores', 'amento', 'amentos', 'imento',
        'imentos', 'mente', 'idade', 'idades', 'cao', 'coes', 's',
    ),
    plural_rewrites=(('oes', 'ao'), ('ais', 'al'), ('eis', 'el')),
    affiliate_hints=('amazon.', 'amzn.to', 'a.co/', 'afiliado'),
)

EN = Lexicon(
    name='en',
    stop_words=frozenset({
        'the', 'a', 'an', 'and', 'or', 'of', 'in', 'to', 'for', 'is', 'are', 'on',
        'with', 'at', 'by', 'from', 'as', 'it', 'this', 'that', 'these', 'those',
        'be', 'was', 'were', 'has', 'have', 'had', 'can', 'will', 'your', 'you',
        'our', 'their', 'its', 'but', 'not', 'more', 'most', 'into', 'about',
    }),
    audit_stop_words=frozenset({
        'the', 'a', 'an', 'and', 'or', 'of', 'in', 'to', 'for', 'is', 'are', 'on',
        'with', 'best', 'guide', 'review', 'top',
    }),
    generic_anchors=('click here', 'read more', 'here', 'learn more', 'this post', 'this article', 'more'),
    placeholder_anchors=('[No text]', '[Image]'),
    weak_prefixes=frozenset({'click', 'see', 'read', 'learn', 'here', 'this', 'that', 'it', 'also', 'then'}),
    connectors=frozenset({'the', 'a', 'an', 'and', 'or', 'of', 'in', 'to', 'for', 'on', 'with', 'at', 'by', 'but'}),
    commercial_terms=frozenset({'price', 'buy', 'discount', 'coupon', 'shipping', 'deal', 'deals', 'cheap', 'amazon', 'store'}),
    commercial_pattern=re.compile(r'(\$\s*\d|€\s*\d|£\s*\d|\bfree shipping\b)'),
    unit_pattern=re.compile(r'\b\d+(?:[.,]\d+)?\s?(?:ml|l|kg|g|mg|cm|mm|m|w|v|mah|gb|tb|in|inch|inches|oz|lb|lbs)\b'),
    suffix_rules=('ization', 'ations', 'ation', 'ments', 'ment', 'ness', 'ing', 'ies', 'es', 's'),
    plural_rewrites=(),
    affiliate_hints=('amazon.', 'amzn.to', 'a.co/', 'affiliate'),
)

LEXICONS = {
    PT_BR.name: PT_BR,
    EN.name: EN,
}

# Stored occurrences keep the placeholder of the lexicon active at sync time
PLACEHOLDER_ANCHORS = frozenset(anchor for lexicon in LEXICONS.values() for anchor in lexicon.placeholder_anchors)


def get_lexicon(name: str = None) -> Lexicon:
    """Return the configured lexicon (settings.LINKING_LEXICON), defaulting to pt-br."""
    key = (name or getattr(settings, 'LINKING_LEXICON', PT_BR.name) or PT_BR.name).lower()
    return LEXICONS.get(key, PT_BR)
