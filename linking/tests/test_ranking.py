"""
Tests for semantic profiles, anchor extraction and candidate ranking.
"""
from collections import Counter

from linking.anchors import (
    AnchorCandidate, bucket_for_offset, extract_anchor_candidates, is_commercial_sentence, select_per_bucket,
)
from linking.lexicon import get_lexicon
from linking.ranking import (
    RankedCandidate, apply_floors, apply_rerank, diversify, final_score, hierarchy_score, jaccard,
)
from linking.records import PageRecord
from linking.semantic import SemanticIndex, compute_idf

TARGETS = [
    PageRecord(
        id=1, title='Café em casa: guia completo', slug='cafe-em-casa', target_keyword='café em casa',
        entities=('moagem', 'grãos'), content='<p>Fazer café em casa começa pela escolha dos grãos.</p>',
        path='/cafe/cafe-em-casa',
    ),
    PageRecord(
        id=3, title='Prensa francesa passo a passo', slug='prensa-francesa', target_keyword='prensa francesa',
        entities=('infusão', 'êmbolo'), content='<p>A prensa francesa faz uma infusão longa com o êmbolo.</p>',
        path='/cafe/prensa-francesa',
    ),
]

ARTICLE = (
    'Preparar um bom café em casa exige atenção aos detalhes. '
    'A moka aquece a água no reservatório inferior e o vapor empurra o líquido pelo funil. '
    'Quem prefere uma bebida encorpada pode experimentar a prensa francesa com infusão longa. '
    'Limpe a moka depois de cada uso e guarde as peças secas.'
)


def candidate(target, anchor, score, bucket='START', **overrides):
    data = {
        'candidate_id': '',
        'target_page_id': target,
        'title': f'Page {target}',
        'url': f'/cafe/{target}',
        'role': 'SUPPORT',
        'anchor_text': anchor,
        'position_bucket': bucket,
        'semantic_score': 50.0,
        'hierarchy_score': 16.0,
        'keyword_score': 0.0,
        'anchor_score': 20.0,
        'final_score': score,
    }
    data.update(overrides)
    return RankedCandidate(**data)


class TestSemanticIndex:

    def test_idf(self):
        idf, total = compute_idf([['cafe', 'casa'], ['cafe']])
        assert total == 2
        assert idf['casa'] > idf['cafe']

    def test_related_page_is_more_similar(self):
        index = SemanticIndex(TARGETS, 'Cafeteira italiana', ARTICLE)
        assert 0 <= index.similarity(3) <= 100
        assert index.similarity(1) > 0
        assert index.similarity(999) == 0.0

    def test_idf_spans_the_whole_silo(self):
        silo_pages = TARGETS + [
            PageRecord(id=5, title='Glossário do café', slug='glossario', content='<p>Termos do café.</p>'),
            PageRecord(id=6, title='Moer café', slug='moer-cafe', content='<p>O moedor de café.</p>'),
        ]
        prensa_with_cafe = PageRecord(
            id=3, title='Prensa francesa', slug='prensa-francesa', content='<p>Café na prensa.</p>',
        )
        corpus = [TARGETS[0], prensa_with_cafe] + silo_pages[2:]
        index = SemanticIndex([TARGETS[0]], 'Cafeteira italiana', ARTICLE, corpus=corpus)

        assert index.document_count == 4
        assert set(index.profiles) == {1}
        # present in every silo page, so only the +1 smoothing term is left
        assert index.term_weight('cafe') == 1.0
        assert index.term_weight('casa') > index.term_weight('cafe')

    def test_core_terms(self):
        index = SemanticIndex(TARGETS, '', ARTICLE)
        assert {'cafe', 'casa', 'moagem', 'grao'} <= index.profiles[1].core


class TestAnchorExtraction:

    def test_bucket_for_offset(self):
        assert bucket_for_offset(0, 300) == 'START'
        assert bucket_for_offset(150, 300) == 'MID'
        assert bucket_for_offset(250, 300) == 'END'

    def test_commercial_sentences(self):
        lexicon = get_lexicon()
        assert is_commercial_sentence('Custa R$ 199 na loja', lexicon)
        assert is_commercial_sentence('Pacote de 500g de café', lexicon)
        assert not is_commercial_sentence('Preparar café em casa', lexicon)

    def test_phrases_match_their_own_target(self):
        index = SemanticIndex(TARGETS, 'Cafeteira italiana', ARTICLE)
        anchors = extract_anchor_candidates(ARTICLE, TARGETS, index)

        assert set(anchors) == {1, 3}
        pillar = anchors[1]
        assert pillar
        assert all('casa' in c.normalized or 'cafe' in c.normalized for c in pillar)
        assert any('cafe em casa' in c.normalized for c in pillar)
        assert pillar[0].bucket == 'START'
        assert not pillar[0].relaxed

        prensa = anchors[3]
        assert any('prensa francesa' in c.normalized for c in prensa)
        for options in anchors.values():
            assert len(options) <= 3
            assert all(2 <= len(c.text.split()) <= 7 for c in options)

    def test_exact_title_is_never_an_anchor(self):
        text = 'Hoje vamos falar de Prensa francesa passo a passo e de mais nada.'
        index = SemanticIndex(TARGETS, '', text)
        anchors = extract_anchor_candidates(text, TARGETS, index)
        assert all(c.normalized != 'prensa francesa passo a passo' for c in anchors[3])

    def test_select_per_bucket(self):
        def anchor(text, bucket, score):
            return AnchorCandidate(target_page_id=1, text=text, normalized=text, bucket=bucket,
                                   score=score, overlap=1, density=0.5, margin=1.0)

        picked = select_per_bucket([
            anchor('a b', 'START', 30), anchor('c d', 'START', 29), anchor('e f', 'MID', 10),
            anchor('g h', 'END', 5), anchor('a b', 'MID', 1),
        ], limit=3)
        assert [c.text for c in picked] == ['a b', 'e f', 'g h']


class TestScores:

    def test_hierarchy_score(self):
        assert hierarchy_score('SUPPORT', 'PILLAR') == 38
        assert hierarchy_score('PILLAR', 'SUPPORT') == 26
        assert hierarchy_score('AUX', 'PILLAR') == 34
        assert hierarchy_score('SUPPORT', 'SUPPORT') == 16
        assert hierarchy_score(None, None) == 8

    def test_jaccard(self):
        assert jaccard(['a', 'b'], ['b', 'c']) == 1 / 3
        assert jaccard([], ['a']) == 0.0

    def test_final_score(self):
        assert final_score(100, 38, 100, 40) == 79.1
        assert final_score(100, 38, 100, 400) == 79.1
        assert final_score(100, 38, 100, 40, already_linked=True) == 49.1
        assert final_score(100, 38, 100, 40, relaxed=True) == 73.1
        assert final_score(0, 0, 0, 0, already_linked=True) == 0


class TestFloorsAndDiversity:

    def test_floor_relaxes_when_too_few_survive(self):
        candidates = [candidate(1, 'a b', 30), candidate(2, 'c d', 20), candidate(3, 'e f', 5)]
        assert [c.target_page_id for c in apply_floors(candidates, 1, [])] == [1]
        assert [c.target_page_id for c in apply_floors(candidates, 2, [])] == [1, 2]
        assert [c.target_page_id for c in apply_floors(candidates, 2, [3])] == [1, 2, 3]

    def test_diversify_constraints(self):
        pool = [candidate(1, f'anchor {i}', 90 - i) for i in range(6)]
        pool += [candidate(2, 'anchor 0', 40), candidate(2, 'outra frase', 35, bucket='MID')]
        pool += [candidate(3, 'anchor 1', 30, bucket='END')]
        selected = diversify(pool, 10, uncovered_targets=[1, 2, 3])

        per_target = Counter(c.target_page_id for c in selected)
        assert per_target[1] == 4
        assert set(per_target) == {1, 2, 3}
        pairs = [(c.normalized_anchor, c.target_page_id) for c in selected]
        assert len(pairs) == len(set(pairs))
        assert [c.candidate_id for c in selected] == [f'c{i}' for i in range(1, len(selected) + 1)]
        assert [c.final_score for c in selected] == sorted((c.final_score for c in selected), reverse=True)

    def test_diversify_prefers_bucket_spread(self):
        pool = [candidate(1, f'start {i}', 90 - i) for i in range(5)]
        pool += [candidate(2, 'meio', 20, bucket='MID'), candidate(3, 'fim', 10, bucket='END')]
        selected = diversify(pool, 3)
        assert {c.position_bucket for c in selected} == {'START', 'MID', 'END'}

    def test_diversify_respects_limit(self):
        pool = [candidate(t, f'frase {t}', 50) for t in range(1, 10)]
        assert len(diversify(pool, 3)) == 3


class TestRerank:

    def shortlist(self):
        return diversify([
            candidate(1, 'café em casa', 80),
            candidate(1, 'bom café caseiro', 70, bucket='MID'),
            candidate(3, 'prensa francesa', 60, bucket='END'),
        ], 20)

    def test_reorders_and_blends(self):
        shortlist = self.shortlist()
        result = apply_rerank(shortlist, [
            {'candidate_id': 'c3', 'reason': 'Melhor leitura.', 'confidence': 1.0},
        ], limit=3)
        assert [c.candidate_id for c in result] == ['c3', 'c1', 'c2']
        assert result[0].source == 'ai'
        assert result[0].final_score == round(60 * 0.72 + 28, 1)
        assert result[0].reason == 'Melhor leitura.'
        assert result[1].source == 'heuristic'

    def test_unknown_ids_are_discarded(self):
        result = apply_rerank(self.shortlist(), [{'candidate_id': 'c99', 'confidence': 1}], limit=3)
        assert [c.source for c in result] == ['heuristic'] * 3

    def test_anchor_relabel_limited_to_offered_anchors(self):
        shortlist = self.shortlist()
        result = apply_rerank(shortlist, [
            {'candidate_id': 'c1', 'anchor_text': 'Bom café caseiro'},
            {'candidate_id': 'c3', 'anchor_text': 'uma anchor inventada'},
        ], limit=2)
        assert result[0].anchor_text == 'bom café caseiro'
        assert result[0].confidence == 0.65
        assert result[1].anchor_text == 'prensa francesa'

    def test_relabelled_anchor_keeps_its_own_bucket(self):
        result = apply_rerank(self.shortlist(), [
            {'candidate_id': 'c1', 'anchor_text': 'bom café caseiro'},
        ], limit=1)
        assert result[0].anchor_text == 'bom café caseiro'
        assert result[0].position_bucket == 'MID'
