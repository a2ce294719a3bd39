"""
Tests for the link audit and link suggestion API endpoints.
"""
import uuid

import pytest
from rest_framework.test import APIClient

from linking.models import LinkOccurrence, SiloAudit
from linking.throttling import LinkSuggestionRateThrottle

ARTICLE = (
    'Preparar um bom café em casa exige atenção aos detalhes. '
    'Antes de começar vale moer café fresco com moagem média no moedor. '
    'Quem prefere uma bebida encorpada pode experimentar a prensa francesa com infusão longa.'
)


@pytest.fixture
def other_silo(create_user, create_silo, create_page):
    owner = create_user(email='outro@example.com')
    silo = create_silo(user=owner, name='Chá', slug='cha')
    page = create_page(silo, 'Chá verde', 'cha-verde', content='<p>Chá verde.</p>', role='PILLAR', position=1)
    return silo, page


@pytest.mark.django_db
class TestSiloAuditEndpoint:

    def test_get_before_first_audit(self, coffee_silo):
        client = coffee_silo['client']
        response = client.get(f"/api/v1/silos/{coffee_silo['silo'].id}/audit/")
        assert response.status_code == 200
        assert response.data['data'] is None

    def test_run_audit_then_cached(self, coffee_silo):
        client = coffee_silo['client']
        url = f"/api/v1/silos/{coffee_silo['silo'].id}/audit/"

        response = client.post(url, data={}, format='json')
        assert response.status_code == 200
        assert response.data['data']['cached'] is False
        assert response.data['data']['ai_status'] == 'skipped'
        assert len(response.data['data']['link_audits']) == 8

        response = client.post(url, data={}, format='json')
        assert response.data['data']['cached'] is True

        response = client.post(url, data={'force': True}, format='json')
        assert response.data['data']['cached'] is False
        assert SiloAudit.objects.filter(silo=coffee_silo['silo']).count() == 1

    def test_get_returns_stored_audit(self, coffee_silo):
        client = coffee_silo['client']
        url = f"/api/v1/silos/{coffee_silo['silo'].id}/audit/"
        client.post(url, data={}, format='json')

        response = client.get(url)
        assert response.status_code == 200
        stored = response.data['data']
        assert stored['health_score'] <= 60
        assert stored['status'] in ('WARNING', 'CRITICAL')
        assert stored['summary']['supports_without_pillar_count'] == 1
        assert len(stored['fingerprint']) == 64

    def test_invalid_force_flag(self, coffee_silo):
        client = coffee_silo['client']
        response = client.post(
            f"/api/v1/silos/{coffee_silo['silo'].id}/audit/", data={'force': 'talvez'}, format='json'
        )
        assert response.status_code == 400
        assert response.data['error']['code'] == 'INVALID_REQUEST'

    def test_other_users_silo_is_forbidden(self, coffee_silo, other_silo):
        silo, _ = other_silo
        response = coffee_silo['client'].post(f"/api/v1/silos/{silo.id}/audit/", data={}, format='json')
        assert response.status_code == 403
        assert response.data['error']['code'] == 'FORBIDDEN'
        assert not SiloAudit.objects.filter(silo=silo).exists()

    def test_unknown_silo(self, coffee_silo):
        response = coffee_silo['client'].get(f"/api/v1/silos/{uuid.uuid4()}/audit/")
        assert response.status_code == 404

    def test_requires_authentication(self, coffee_silo):
        response = APIClient().get(f"/api/v1/silos/{coffee_silo['silo'].id}/audit/")
        assert response.status_code == 401


@pytest.mark.django_db
class TestLinkAuditListEndpoint:

    def test_lists_occurrences_with_audits(self, coffee_silo):
        client = coffee_silo['client']
        client.post(f"/api/v1/silos/{coffee_silo['silo'].id}/audit/", data={}, format='json')

        pillar = coffee_silo['pillar']
        response = client.get(f'/api/v1/link-audits/?page_id={pillar.id}')
        assert response.status_code == 200
        assert response.data['meta'] == {'total': 4, 'page_id': pillar.id}
        internal = [item for item in response.data['data'] if item['link_type'] == LinkOccurrence.TYPE_INTERNAL]
        assert len(internal) == 3
        assert all(item['audit'] is not None for item in internal)
        affiliate = [item for item in response.data['data'] if item['link_type'] == LinkOccurrence.TYPE_AFFILIATE]
        assert affiliate[0]['audit'] is None

    def test_missing_page_id(self, coffee_silo):
        response = coffee_silo['client'].get('/api/v1/link-audits/')
        assert response.status_code == 400
        assert response.data['error']['code'] == 'INVALID_REQUEST'

    def test_other_users_page_is_forbidden(self, coffee_silo, other_silo):
        _, page = other_silo
        response = coffee_silo['client'].get(f'/api/v1/link-audits/?page_id={page.id}')
        assert response.status_code == 403

    def test_unknown_page(self, coffee_silo):
        response = coffee_silo['client'].get('/api/v1/link-audits/?page_id=999999')
        assert response.status_code == 404


@pytest.mark.django_db
class TestLinkSuggestionsEndpoint:

    def payload(self, coffee_silo, **overrides):
        data = {
            'silo_id': str(coffee_silo['silo'].id),
            'page_id': coffee_silo['moka'].id,
            'title': 'Cafeteira italiana: como usar',
            'keyword': 'cafeteira italiana',
            'text': ARTICLE,
        }
        data.update(overrides)
        return data

    def test_suggestions(self, coffee_silo):
        response = coffee_silo['client'].post(
            '/api/v1/link-suggestions/', data=self.payload(coffee_silo), format='json'
        )
        assert response.status_code == 200
        data = response.data['data']
        assert data['source'] == 'heuristic'
        assert data['suggestions']
        assert coffee_silo['glossario'].id not in {s['target_page_id'] for s in data['suggestions']}

    def test_short_text(self, coffee_silo):
        response = coffee_silo['client'].post(
            '/api/v1/link-suggestions/', data=self.payload(coffee_silo, text='curto'), format='json'
        )
        assert response.status_code == 400
        assert response.data['error']['code'] == 'INVALID_REQUEST'
        assert 'text' in response.data['error']['detail']

    def test_foreign_silo(self, coffee_silo, other_silo):
        silo, _ = other_silo
        response = coffee_silo['client'].post(
            '/api/v1/link-suggestions/',
            data=self.payload(coffee_silo, silo_id=str(silo.id), page_id=None),
            format='json',
        )
        assert response.status_code == 403

    def test_page_outside_silo(self, coffee_silo, other_silo):
        _, page = other_silo
        response = coffee_silo['client'].post(
            '/api/v1/link-suggestions/', data=self.payload(coffee_silo, page_id=page.id), format='json'
        )
        assert response.status_code == 404

    def test_rate_limited(self, coffee_silo, monkeypatch):
        monkeypatch.setattr(LinkSuggestionRateThrottle, 'THROTTLE_RATES', {'link_suggestions': '2/10m'})
        client = coffee_silo['client']
        for _ in range(2):
            response = client.post('/api/v1/link-suggestions/', data=self.payload(coffee_silo), format='json')
            assert response.status_code == 200

        response = client.post('/api/v1/link-suggestions/', data=self.payload(coffee_silo), format='json')
        assert response.status_code == 429
        assert 'Retry-After' in response.headers

    def test_requires_authentication(self, coffee_silo):
        response = APIClient().post('/api/v1/link-suggestions/', data=self.payload(coffee_silo), format='json')
        assert response.status_code == 401


class TestRateParsing:

    def test_period_multiplier(self):
        throttle = LinkSuggestionRateThrottle.__new__(LinkSuggestionRateThrottle)
        assert throttle.parse_rate('25/10m') == (25, 600)
        assert throttle.parse_rate('100/hour') == (100, 3600)
        assert throttle.parse_rate('5/2d') == (5, 172800)
        assert throttle.parse_rate(None) == (None, None)

    def test_invalid_rate(self):
        throttle = LinkSuggestionRateThrottle.__new__(LinkSuggestionRateThrottle)
        with pytest.raises(ValueError):
            throttle.parse_rate('muitos')
