"""
Tests for text helpers and link occurrence parsing/sync.
"""
import pytest

from linking.models import LinkOccurrence
from linking.occurrences import (
    bucket_for, build_path_index, extract_links, path_from_href, resolve_target, sync_silo_occurrences,
)
from linking.records import PageRecord
from linking.storage import load_pages
from linking.text import clean_anchor, is_generic_anchor, normalize, split_sentences, strip_html, tokenize

PAGES = [
    PageRecord(id=1, title='Café em casa', slug='cafe-em-casa', path='/cafe/cafe-em-casa'),
    PageRecord(id=2, title='Moer café', slug='moer-cafe', path='/cafe/moer-cafe'),
]


class TestText:

    def test_normalize(self):
        assert normalize('  Café, ÁGUA & Pressão!  ') == 'cafe agua pressao'
        assert normalize(None) == ''

    def test_strip_html_drops_scripts(self):
        html = '<p>Olá <b>mundo</b></p><script>alert(1)</script><style>p{}</style>'
        assert strip_html(html) == 'Olá mundo'

    def test_tokenize_folds_plurals(self):
        assert tokenize('Cafeteiras') == tokenize('cafeteira') == ['cafeteira']
        assert tokenize('as pressões') == ['pressao']

    def test_generic_anchor_whole_words(self):
        assert is_generic_anchor('Clique aqui')
        assert is_generic_anchor('leia mais sobre moagem')
        assert not is_generic_anchor('postagem sobre moagem')

    def test_split_sentences_offsets(self):
        text = 'Primeira frase. Segunda frase!\nTerceira'
        sentences = split_sentences(text)
        assert [s.text for s in sentences] == ['Primeira frase.', 'Segunda frase!', 'Terceira']
        assert all(text[s.start:s.end] == s.text for s in sentences)

    def test_clean_anchor(self):
        assert clean_anchor('  um   dois tres quatro cinco seis sete oito ') == 'um dois tres quatro cinco seis sete'


class TestLinkParsing:

    def test_path_from_href(self):
        assert path_from_href('https://www.meusite.com.br/cafe/moer-cafe/?x=1', 'meusite.com.br') == '/cafe/moer-cafe'
        assert path_from_href('//outro.com/cafe', 'meusite.com.br') is None
        assert path_from_href('cafe/moer-cafe#topo', 'meusite.com.br') == '/cafe/moer-cafe'
        assert path_from_href('ftp://meusite.com.br/x', 'meusite.com.br') is None

    def test_resolve_target_by_path_or_slug(self):
        index = build_path_index(PAGES)
        assert resolve_target('/cafe/moer-cafe', index) == 2
        assert resolve_target('/blog/antigo/moer-cafe', index) == 2
        assert resolve_target('/nada', index) is None

    def test_bucket_for(self):
        assert bucket_for(0, 100) == 'START'
        assert bucket_for(40, 100) == 'MID'
        assert bucket_for(90, 100) == 'END'
        assert bucket_for(5, 0) == 'START'

    def test_extract_links(self):
        html = (
            '<p>Aprenda a <a href="/cafe/moer-cafe" rel="nofollow ugc" target="_blank">moer café</a> hoje.</p>'
            '<p><a href="https://www.amazon.com.br/dp/1" rel="sponsored">comprar moedor</a></p>'
            '<p><a href="https://wikipedia.org/wiki/Caf%C3%A9">café</a></p>'
            '<p><a href="/cafe/cafe-em-casa"><img src="x.png"></a><a href="/cafe/cafe-em-casa"></a></p>'
            '<p><a href="#topo">topo</a><a href="mailto:a@b.com">email</a></p>'
        )
        links = extract_links(html, build_path_index(PAGES), 'meusite.com.br')
        assert [link.anchor_text for link in links] == [
            'moer café', 'comprar moedor', 'café', '[Imagem]', '[Sem texto]',
        ]

        internal = links[0]
        assert internal.link_type == LinkOccurrence.TYPE_INTERNAL
        assert internal.target_page_id == 2
        assert internal.is_nofollow and internal.is_ugc and internal.is_blank
        assert not internal.is_sponsored
        assert 'Aprenda a moer café hoje.' in internal.context_snippet
        assert internal.start_index is not None

        assert links[1].link_type == LinkOccurrence.TYPE_AFFILIATE
        assert links[1].is_sponsored
        assert links[1].target_page_id is None
        assert links[2].link_type == LinkOccurrence.TYPE_EXTERNAL
        assert links[3].target_page_id == 1
        assert links[3].start_index is None
        assert links[0].position_bucket == 'START'
        assert links[4].position_bucket == 'END'

    def test_empty_html(self):
        assert extract_links('', {}) == []


@pytest.mark.django_db
class TestOccurrenceSync:

    def test_sync_stores_occurrences(self, coffee_silo):
        silo = coffee_silo['silo']
        pages = load_pages(silo)
        result = sync_silo_occurrences(silo, pages)
        assert result == {'pages': 5, 'updated': 5, 'unchanged': 0, 'failed': 0, 'failed_page_ids': []}

        pillar_links = LinkOccurrence.objects.filter(source_page=coffee_silo['pillar']).order_by('start_index')
        assert pillar_links.count() == 4
        assert {occ.target_page_id for occ in pillar_links if occ.target_page_id} == {
            coffee_silo['moer'].id, coffee_silo['moka'].id, coffee_silo['prensa'].id,
        }

        absolute = LinkOccurrence.objects.get(source_page=coffee_silo['moka'], target_page=coffee_silo['pillar'])
        assert absolute.link_type == LinkOccurrence.TYPE_INTERNAL

        hidden = LinkOccurrence.objects.get(source_page=coffee_silo['glossario'])
        assert hidden.anchor_text == '[Sem texto]'

    def test_resync_keeps_ids_when_unchanged(self, coffee_silo):
        silo = coffee_silo['silo']
        pages = load_pages(silo)
        sync_silo_occurrences(silo, pages)
        ids = set(LinkOccurrence.objects.values_list('id', flat=True))

        result = sync_silo_occurrences(silo, pages)
        assert result['unchanged'] == 5
        assert set(LinkOccurrence.objects.values_list('id', flat=True)) == ids

    def test_changed_body_replaces_only_that_page(self, coffee_silo):
        silo = coffee_silo['silo']
        sync_silo_occurrences(silo, load_pages(silo))
        untouched = set(LinkOccurrence.objects.exclude(source_page=coffee_silo['prensa']).values_list('id', flat=True))

        prensa = coffee_silo['prensa']
        prensa.content += '<p>Volte ao <a href="/cafe/cafe-em-casa">guia de café em casa</a>.</p>'
        prensa.save()
        result = sync_silo_occurrences(silo, load_pages(silo))

        assert result['updated'] == 1
        assert LinkOccurrence.objects.filter(source_page=prensa).count() == 2
        assert set(LinkOccurrence.objects.exclude(source_page=prensa).values_list('id', flat=True)) == untouched

    def test_parse_failure_is_isolated(self, coffee_silo, monkeypatch):
        from linking import occurrences

        real_extract = occurrences.extract_links

        def flaky(html, *args, **kwargs):
            if 'êmbolo' in html:
                raise ValueError('broken markup')
            return real_extract(html, *args, **kwargs)

        monkeypatch.setattr(occurrences, 'extract_links', flaky)
        silo = coffee_silo['silo']
        result = sync_silo_occurrences(silo, load_pages(silo))
        assert result['failed'] == 1
        assert result['failed_page_ids'] == [coffee_silo['prensa'].id]
        assert result['updated'] == 4
        assert not LinkOccurrence.objects.filter(source_page=coffee_silo['prensa']).exists()
