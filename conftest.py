"""
Shared fixtures: users, authenticated clients and a small coffee silo.
"""
import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken


@pytest.fixture(autouse=True)
def link_engine_settings(settings):
    """No network oracle and a fresh throttle/column state in every test."""
    from linking import storage
    settings.LINK_ORACLE_ENABLED = False
    settings.LINKING_LEXICON = 'pt-br'
    settings.SITE_URL = 'https://meusite.com.br'
    settings.LINK_SYNC_MAX_WORKERS = 2
    cache.clear()
    storage.reset_column_cache()
    yield
    storage.reset_column_cache()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user_model():
    return get_user_model()


@pytest.fixture
def create_user(user_model):
    def _create_user(email="test@example.com", password="testpass123"):
        return user_model.objects.create_user(
            email=email,
            username=email,
            password=password
        )
    return _create_user


@pytest.fixture
def authenticated_client(api_client, create_user):
    user = create_user()
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {str(refresh.access_token)}')
    return api_client, user


@pytest.fixture
def create_silo(create_user):
    def _create_silo(user=None, name="Café", slug="cafe"):
        from silos.models import Silo
        if user is None:
            user = create_user()
        return Silo.objects.create(user=user, name=name, slug=slug)
    return _create_silo


@pytest.fixture
def create_page():
    def _create_page(silo, title, slug, content='', target_keyword=None, entities=None,
                     role=None, position=None):
        from silos.models import Page, SiloPage
        page = Page.objects.create(
            silo=silo,
            title=title,
            slug=slug,
            content=content,
            target_keyword=target_keyword,
            entities=entities or [],
        )
        if role is not None or position is not None:
            SiloPage.objects.create(silo=silo, page=page, role=role, position=position)
        return page
    return _create_page


@pytest.fixture
def coffee_silo(authenticated_client, create_silo, create_page):
    """
    Pillar, three Supports and one Aux page, linked so that:
    - the Pillar links to every Support
    - Support 1 and Support 2 link back to the Pillar
    - Support 3 never links to the Pillar
    - the Aux page links to the Pillar with an empty anchor
    """
    client, user = authenticated_client
    silo = create_silo(user=user)

    pillar = create_page(
        silo, 'Café em casa: guia completo', 'cafe-em-casa',
        target_keyword='café em casa', entities=['moagem', 'grãos', 'extração'],
        role='PILLAR', position=1,
    )
    moer = create_page(
        silo, 'Como moer café em grãos', 'moer-cafe',
        target_keyword='moer café', entities=['moedor', 'moagem'],
        role='SUPPORT', position=2,
    )
    moka = create_page(
        silo, 'Cafeteira italiana: como usar', 'cafeteira-italiana',
        target_keyword='cafeteira italiana', entities=['moka', 'pressão'],
        role='SUPPORT', position=3,
    )
    prensa = create_page(
        silo, 'Prensa francesa passo a passo', 'prensa-francesa',
        target_keyword='prensa francesa', entities=['infusão', 'êmbolo'],
        role='SUPPORT', position=4,
    )
    glossario = create_page(
        silo, 'Glossário do café', 'glossario',
        target_keyword='glossário do café', role='AUX', position=5,
    )

    pillar.content = (
        '<p>Fazer café em casa começa pela escolha dos grãos e pela moagem certa.</p>'
        '<p>Aprenda a <a href="/cafe/moer-cafe">moer café em grãos</a> no ponto ideal, '
        'descubra como usar a <a href="/cafe/cafeteira-italiana">cafeteira italiana moka</a> '
        'e veja a <a href="/cafe/prensa-francesa">prensa francesa passo a passo</a>.</p>'
        '<p>Consulte também <a href="https://www.amazon.com.br/dp/123">esta oferta</a>.</p>'
    )
    pillar.save()
    moer.content = (
        '<p>O moedor de disco entrega moagem uniforme para qualquer método.</p>'
        '<p>Volte ao <a href="/cafe/cafe-em-casa">guia completo do café</a> para ver todos os métodos.</p>'
    )
    moer.save()
    moka.content = (
        '<p>A moka usa pressão de vapor para extrair o café.</p>'
        '<p>Leia o <a href="https://meusite.com.br/cafe/cafe-em-casa/">guia completo de café em casa</a> '
        'e saiba <a href="/cafe/moer-cafe" rel="nofollow">como moer café para moka</a>.</p>'
    )
    moka.save()
    prensa.content = (
        '<p>A prensa francesa faz uma infusão longa com o êmbolo de metal.</p>'
        '<p>Para variar o preparo, a <a href="/cafe/cafeteira-italiana">cafeteira italiana</a> '
        'é uma boa alternativa.</p>'
    )
    prensa.save()
    glossario.content = '<p>Termos do café.</p><p><a href="/cafe/cafe-em-casa"></a></p>'
    glossario.save()

    return {
        'client': client,
        'user': user,
        'silo': silo,
        'pillar': pillar,
        'moer': moer,
        'moka': moka,
        'prensa': prensa,
        'glossario': glossario,
    }


class StubAuditAdvisor:
    """Audit advisor double recording its calls."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def advise(self, payload):
        self.calls.append(payload)
        if self.error:
            raise self.error
        if self.response is not None:
            return self.response
        return {'linkSuggestions': [
            {
                'occurrenceId': link['occurrenceId'],
                'suggested_anchor': ['anchor sugerida'],
                'suggestion_note': 'Contexto coerente.',
                'intent_match': 80,
            }
            for link in payload['links']
        ]}


class StubReranker:
    """Suggestion re-ranker double recording its calls."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def rerank(self, payload):
        self.calls.append(payload)
        if self.error:
            raise self.error
        if self.response is not None:
            return self.response(payload) if callable(self.response) else self.response
        return {'suggestions': []}


@pytest.fixture
def stub_advisor():
    return StubAuditAdvisor


@pytest.fixture
def stub_reranker():
    return StubReranker
