"""
Tests for the silo audit flow: sync, scoring, advisor merge, health and cache.
"""
import pytest

from linking.audit import audit_silo
from linking.models import LinkAudit, LinkOccurrence, SiloAudit


@pytest.mark.django_db
class TestSiloAudit:

    def test_heuristic_audit(self, coffee_silo):
        silo = coffee_silo['silo']
        result = audit_silo(silo, advisor=None)

        assert result['cached'] is False
        assert result['ai_status'] == 'skipped'
        assert result['message'] == 'Standard audit completed.'
        # 3 Pillar links, 4 Support links and the hidden Aux link;
        # the affiliate link is not audited
        assert len(result['link_audits']) == 8
        assert LinkAudit.objects.filter(silo=silo).count() == 8
        assert SiloAudit.objects.filter(silo=silo).count() == 1

        for audit in result['link_audits']:
            assert 0 <= audit['score'] <= 100
            assert audit['label'] in ('STRONG', 'OK', 'WEAK')
        ids = [audit['occurrence_id'] for audit in result['link_audits']]
        assert ids == sorted(ids)

    def test_hidden_link_is_weak(self, coffee_silo):
        result = audit_silo(coffee_silo['silo'], advisor=None)
        hidden = LinkOccurrence.objects.get(source_page=coffee_silo['glossario'])
        audit = next(a for a in result['link_audits'] if a['occurrence_id'] == str(hidden.id))
        assert 'HIDDEN_LINK_PATTERN' in audit['reasons']
        assert audit['label'] == 'WEAK'
        assert audit['action'] == 'REMOVE_LINK'

    def test_support_without_pillar_link_caps_health(self, coffee_silo):
        result = audit_silo(coffee_silo['silo'], advisor=None)
        assert result['health_score'] <= 60
        assert result['summary']['supports_without_pillar_count'] == 1
        assert any(
            issue['message'] == 'Support page does not link to the Pillar.'
            and issue['target_page_id'] == coffee_silo['prensa'].id
            for issue in result['issues']
        )

    def test_prensa_links_are_flagged_for_missing_pillar(self, coffee_silo):
        result = audit_silo(coffee_silo['silo'], advisor=None)
        prensa_link = LinkOccurrence.objects.get(source_page=coffee_silo['prensa'])
        audit = next(a for a in result['link_audits'] if a['occurrence_id'] == str(prensa_link.id))
        assert 'SUPPORT_NOT_LINKING_PILLAR' in audit['reasons']
        assert audit['label'] == 'WEAK'

    def test_unchanged_silo_is_served_from_cache(self, coffee_silo, stub_advisor):
        silo = coffee_silo['silo']
        first_advisor = stub_advisor()
        first = audit_silo(silo, advisor=first_advisor)
        assert first['ai_status'] == 'success'
        assert first['message'] == 'Smart audit completed.'
        assert len(first_advisor.calls) == 1

        second_advisor = stub_advisor()
        second = audit_silo(silo, advisor=second_advisor)
        assert second_advisor.calls == []
        assert second['cached'] is True
        assert second['message'] == 'Audit is already up to date (cached).'
        assert second['ai_status'] == 'success'
        assert second['health_score'] == first['health_score']
        assert second['issues'] == first['issues']
        assert second['link_audits'] == first['link_audits']

    def test_force_refresh_recomputes(self, coffee_silo, stub_advisor):
        silo = coffee_silo['silo']
        audit_silo(silo, advisor=None)
        fingerprint = SiloAudit.objects.get(silo=silo).fingerprint
        first_id = SiloAudit.objects.get(silo=silo).id

        advisor = stub_advisor()
        result = audit_silo(silo, force_refresh=True, advisor=advisor)
        assert result['cached'] is False
        assert len(advisor.calls) == 1
        stored = SiloAudit.objects.get(silo=silo)
        assert stored.id != first_id
        assert stored.fingerprint == fingerprint

    def test_changed_content_invalidates_cache(self, coffee_silo):
        silo = coffee_silo['silo']
        audit_silo(silo, advisor=None)
        before = SiloAudit.objects.get(silo=silo).fingerprint

        prensa = coffee_silo['prensa']
        prensa.content += '<p>Volte ao <a href="/cafe/cafe-em-casa">guia de café em casa</a>.</p>'
        prensa.save()

        result = audit_silo(silo, advisor=None)
        assert result['cached'] is False
        assert result['summary']['supports_without_pillar_count'] == 0
        assert SiloAudit.objects.get(silo=silo).fingerprint != before

    def test_new_page_without_hierarchy_row_invalidates_cache(self, coffee_silo, create_page):
        silo = coffee_silo['silo']
        first = audit_silo(silo, advisor=None)

        create_page(silo, 'Moagem fina para espresso', 'moagem-fina')
        result = audit_silo(silo, advisor=None)

        assert result['cached'] is False
        assert result['summary']['isolated_count'] == first['summary']['isolated_count'] + 1

    def test_failed_sync_page_links_are_not_audited(self, coffee_silo, monkeypatch):
        from linking import occurrences

        silo = coffee_silo['silo']
        audit_silo(silo, advisor=None)
        prensa_link = LinkOccurrence.objects.get(source_page=coffee_silo['prensa'])

        real_extract = occurrences.extract_links

        def flaky(html, *args, **kwargs):
            if 'êmbolo' in html:
                raise ValueError('broken markup')
            return real_extract(html, *args, **kwargs)

        monkeypatch.setattr(occurrences, 'extract_links', flaky)
        result = audit_silo(silo, advisor=None)

        assert result['cached'] is False
        assert str(prensa_link.id) not in {audit['occurrence_id'] for audit in result['link_audits']}
        assert len(result['link_audits']) == 7

    def test_advisor_input_is_merged(self, coffee_silo, stub_advisor):
        advisor = stub_advisor()
        result = audit_silo(coffee_silo['silo'], advisor=advisor)

        payload = advisor.calls[0]
        assert payload['silo'] == coffee_silo['silo'].name
        assert {link['occurrenceId'] for link in payload['links']} == {
            audit['occurrence_id'] for audit in result['link_audits']
        }
        for audit in result['link_audits']:
            assert audit['intent_match'] == 80
            assert audit['note'] == 'Contexto coerente.'
            assert audit['suggested_anchor'] == 'anchor sugerida'
            if 'HIDDEN_LINK_PATTERN' in audit['reasons']:
                assert audit['label'] == 'WEAK'
                assert audit['score'] <= 49

    def test_advisor_failure_falls_back(self, coffee_silo, stub_advisor):
        advisor = stub_advisor(error=TimeoutError('slow'))
        result = audit_silo(coffee_silo['silo'], advisor=advisor)
        assert result['ai_status'] == 'failed'
        assert result['message'] == 'Standard audit completed.'
        assert all(audit['intent_match'] is None for audit in result['link_audits'])

    def test_advisor_invented_ids_are_ignored(self, coffee_silo, stub_advisor):
        advisor = stub_advisor(response={'linkSuggestions': [
            {'occurrenceId': 'not-a-link', 'intent_match': 100, 'suggestion_note': 'x'},
        ]})
        result = audit_silo(coffee_silo['silo'], advisor=advisor)
        assert result['ai_status'] == 'success'
        assert all(audit['note'] is None for audit in result['link_audits'])

    def test_invalid_advisor_payload_is_a_failure(self, coffee_silo, stub_advisor):
        advisor = stub_advisor(response={'linkSuggestions': [{'intent_match': 400}]})
        result = audit_silo(coffee_silo['silo'], advisor=advisor)
        assert result['ai_status'] == 'failed'

    def test_empty_silo(self, create_silo):
        result = audit_silo(create_silo(), advisor=None)
        assert result['link_audits'] == []
        assert result['issues'][0]['message'] == 'No Pillar page defined.'
        assert result['health_score'] == 60
