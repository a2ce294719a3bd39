"""
Tests for silos app - hierarchy normalization and hierarchy management API.
"""
import uuid
from dataclasses import dataclass

import pytest

from silos.hierarchy import (
    AUX, PILLAR, SUPPORT, HierarchyRow, collation_key, normalize_hierarchy, validate_structure,
)


@dataclass
class FakePage:
    id: int
    title: str


def rows(*specs):
    return [HierarchyRow(page_id=page_id, role=role, position=position) for page_id, role, position in specs]


class TestNormalizeHierarchy:

    def test_basic_chain(self):
        pages = [FakePage(1, 'Pillar'), FakePage(2, 'A'), FakePage(3, 'B'), FakePage(4, 'Glossário')]
        hierarchy = normalize_hierarchy(pages, rows(
            (1, PILLAR, 1), (2, SUPPORT, 2), (3, SUPPORT, 3), (4, AUX, 4),
        ))
        assert hierarchy.pillar_id == 1
        assert hierarchy.support_ids == [2, 3]
        assert hierarchy.aux_ids == [4]
        assert hierarchy.get(3).support_index == 2
        assert hierarchy.get(4).support_index is None
        assert hierarchy.counts() == {'pillars': 1, 'supports': 2, 'aux': 1}

    def test_two_pillars_keep_the_first(self):
        pages = [FakePage(1, 'Um'), FakePage(2, 'Dois'), FakePage(3, 'Três')]
        hierarchy = normalize_hierarchy(pages, rows((1, PILLAR, 3), (2, PILLAR, 1), (3, SUPPORT, 2)))
        assert hierarchy.pillar_id == 2
        assert hierarchy.role_of(1) == SUPPORT
        assert hierarchy.support_ids == [3, 1]

    def test_gaps_and_missing_positions(self):
        pages = [FakePage(1, 'Pillar'), FakePage(2, 'Zebra'), FakePage(3, 'água'), FakePage(4, 'Beta')]
        hierarchy = normalize_hierarchy(pages, rows(
            (1, PILLAR, 10), (2, SUPPORT, 40), (3, SUPPORT, None), (4, SUPPORT, 0),
        ))
        # Missing and non-positive positions sort last, by accent-insensitive title
        assert hierarchy.support_ids == [2, 3, 4]
        assert [hierarchy.get(pid).support_index for pid in hierarchy.support_ids] == [1, 2, 3]

    def test_unassigned_pages_become_supports(self):
        pages = [FakePage(1, 'Pillar'), FakePage(2, 'Sem papel')]
        hierarchy = normalize_hierarchy(pages, rows((1, PILLAR, 1)))
        assert hierarchy.role_of(2) == SUPPORT

    def test_no_explicit_pillar_promotes_first_page(self):
        pages = [FakePage(1, 'B'), FakePage(2, 'A')]
        hierarchy = normalize_hierarchy(pages, rows((1, SUPPORT, 2), (2, SUPPORT, 1)))
        assert hierarchy.pillar_id == 2

    def test_unknown_role_and_bad_position(self):
        row = HierarchyRow.from_row({'page_id': '7', 'role': ' support ', 'position': 'abc'})
        assert row == HierarchyRow(page_id=7, role=SUPPORT, position=None)
        assert HierarchyRow.from_row({'page_id': 7, 'role': 'GUEST', 'position': True}).role is None

    def test_rows_for_unknown_pages_are_ignored(self):
        hierarchy = normalize_hierarchy([FakePage(1, 'Pillar')], rows((1, PILLAR, 1), (99, SUPPORT, 2)))
        assert hierarchy.get(99) is None

    def test_empty(self):
        hierarchy = normalize_hierarchy([], [])
        assert hierarchy.pillar_id is None
        assert hierarchy.eligible_targets(None) == []

    def test_collation_key(self):
        assert collation_key('Água') == collation_key('agua')


class TestAdjacency:

    def hierarchy(self):
        pages = [FakePage(i, f'Page {i}') for i in range(1, 6)]
        return normalize_hierarchy(pages, rows(
            (1, PILLAR, 1), (2, SUPPORT, 2), (3, SUPPORT, 3), (4, SUPPORT, 4), (5, AUX, 5),
        ))

    def test_violation_reason(self):
        hierarchy = self.hierarchy()
        assert hierarchy.violation_reason(1, 2) is None
        assert hierarchy.violation_reason(1, 5) is not None
        assert hierarchy.violation_reason(2, 1) is None
        assert hierarchy.violation_reason(2, 3) is None
        assert hierarchy.violation_reason(2, 4) is not None
        assert hierarchy.violation_reason(5, 1) is None
        assert hierarchy.violation_reason(5, 2) is not None
        assert hierarchy.violation_reason(2, 99) is None

    def test_eligible_targets(self):
        hierarchy = self.hierarchy()
        assert sorted(hierarchy.eligible_targets(1)) == [2, 3, 4]
        assert sorted(hierarchy.eligible_targets(3)) == [1, 2, 4]
        assert hierarchy.eligible_targets(5) == [1]
        assert hierarchy.eligible_targets(None) == [1, 2, 3, 4]

    def test_structure_warnings(self):
        warnings = validate_structure(self.hierarchy())
        assert [w['rule_id'] for w in warnings] == []

        small = normalize_hierarchy([FakePage(1, 'Pillar')], rows((1, PILLAR, 1)))
        assert [w['rule_id'] for w in validate_structure(small)] == ['MIN_SUPPORTS']
        assert [w['rule_id'] for w in validate_structure(normalize_hierarchy([], []))] == [
            'MIN_PILLARS', 'MIN_SUPPORTS',
        ]


@pytest.mark.django_db
class TestSiloHierarchyAPI:

    def test_list_silos(self, coffee_silo):
        response = coffee_silo['client'].get('/api/v1/silos/')
        assert response.status_code == 200
        assert response.data['meta']['total'] == 1
        assert response.data['data'][0]['page_count'] == 5

    def test_get_hierarchy(self, coffee_silo):
        response = coffee_silo['client'].get(f"/api/v1/silos/{coffee_silo['silo'].id}/hierarchy/")
        assert response.status_code == 200
        data = response.data['data']
        assert data['pillar_id'] == coffee_silo['pillar'].id
        assert [page['role'] for page in data['pages']] == [PILLAR, SUPPORT, SUPPORT, SUPPORT, AUX]
        assert [page['support_index'] for page in data['pages'][1:4]] == [1, 2, 3]
        assert data['structure_warnings'] == []

    def test_update_hierarchy(self, coffee_silo):
        client = coffee_silo['client']
        url = f"/api/v1/silos/{coffee_silo['silo'].id}/hierarchy/"
        response = client.put(url, data={'pages': [
            {'page_id': coffee_silo['prensa'].id, 'role': SUPPORT, 'position': 1},
            {'page_id': coffee_silo['glossario'].id, 'role': SUPPORT, 'position': 6},
        ]}, format='json')
        assert response.status_code == 200
        data = response.data['data']
        supports = [page['id'] for page in data['pages'] if page['role'] == SUPPORT]
        assert supports[0] == coffee_silo['prensa'].id
        assert supports[-1] == coffee_silo['glossario'].id

    def test_update_rejects_foreign_pages(self, coffee_silo, create_user, create_silo, create_page):
        other = create_silo(user=create_user(email='outro@example.com'), name='Chá', slug='cha')
        foreign = create_page(other, 'Chá verde', 'cha-verde')
        response = coffee_silo['client'].put(
            f"/api/v1/silos/{coffee_silo['silo'].id}/hierarchy/",
            data={'pages': [{'page_id': foreign.id, 'role': SUPPORT, 'position': 2}]},
            format='json',
        )
        assert response.status_code == 400
        assert response.data['error']['detail'] == {'page_ids': [foreign.id]}

    def test_update_rejects_unknown_role(self, coffee_silo):
        response = coffee_silo['client'].put(
            f"/api/v1/silos/{coffee_silo['silo'].id}/hierarchy/",
            data={'pages': [{'page_id': coffee_silo['moer'].id, 'role': 'GUEST'}]},
            format='json',
        )
        assert response.status_code == 400
        assert response.data['error']['code'] == 'INVALID_REQUEST'

    def test_update_rejects_a_bare_list_body(self, coffee_silo):
        response = coffee_silo['client'].put(
            f"/api/v1/silos/{coffee_silo['silo'].id}/hierarchy/",
            data=[{'page_id': coffee_silo['moer'].id, 'role': SUPPORT, 'position': 2}],
            format='json',
        )
        assert response.status_code == 400
        assert response.data['error']['code'] == 'INVALID_REQUEST'

    def test_other_users_silo_is_forbidden(self, coffee_silo, create_user, create_silo):
        other = create_silo(user=create_user(email='outro@example.com'), name='Chá', slug='cha')
        response = coffee_silo['client'].get(f'/api/v1/silos/{other.id}/hierarchy/')
        assert response.status_code == 403
        assert response.data['error']['code'] == 'FORBIDDEN'

    def test_unknown_silo(self, coffee_silo):
        response = coffee_silo['client'].get(f'/api/v1/silos/{uuid.uuid4()}/hierarchy/')
        assert response.status_code == 404
