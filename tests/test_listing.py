from datetime import date

import pytest

from teaching_contracts.errors import AccessDenied, ValidationError
from teaching_contracts.services import contracts
from teaching_contracts.services.listing import ensure_can_access, list_contracts

TODAY = date(2025, 3, 1)


def _ids(result):
    return [row['id'] for row in result['data']]


@pytest.fixture
def spread(seed, make_contract):
    """One contract per interesting shape, created oldest first."""
    own = make_contract()
    other = make_contract(lecturer=seed.other_lecturer, academic_year="2023-2024")
    business = make_contract(courses=[{'course_id': seed.marketing.id, 'hours': 20}])
    mixed = make_contract(courses=[
        {'course_id': seed.algorithms.id, 'hours': 10},
        {'course_id': seed.marketing.id, 'hours': 10},
    ])
    return own, other, business, mixed


class TestScope:

    def test_lecturer_sees_only_own_contracts(self, seed, spread):
        own, other, business, mixed = spread
        result = list_contracts(seed.lecturer, {}, 1, 10, TODAY)
        assert _ids(result) == [mixed.id, business.id, own.id]

    def test_filters_never_widen_lecturer_scope(self, seed, spread):
        result = list_contracts(seed.lecturer, {'academic_year': '2023-2024'}, 1, 10, TODAY)
        assert result['data'] == []
        assert result['total'] == 0

    def test_admin_sees_own_department(self, seed, spread):
        own, other, business, mixed = spread
        assert _ids(list_contracts(seed.admin, {}, 1, 10, TODAY)) == [mixed.id, other.id, own.id]
        assert _ids(list_contracts(seed.biz_admin, {}, 1, 10, TODAY)) == [mixed.id, business.id]

    def test_management_sees_own_department(self, seed, spread):
        own, other, business, mixed = spread
        assert set(_ids(list_contracts(seed.management, {}, 1, 10, TODAY))) == {own.id, other.id, mixed.id}

    def test_superadmin_sees_everything(self, seed, spread):
        assert list_contracts(seed.superadmin, {}, 1, 10, TODAY)['total'] == 4

    def test_ensure_can_access(self, seed, spread):
        own, other, business, mixed = spread
        ensure_can_access(seed.lecturer, own)
        ensure_can_access(seed.biz_admin, mixed)
        with pytest.raises(AccessDenied):
            ensure_can_access(seed.other_lecturer, own)
        with pytest.raises(AccessDenied):
            ensure_can_access(seed.admin, business)


class TestPaging:

    def test_pages_through_results(self, seed, spread):
        first = list_contracts(seed.superadmin, {}, 1, 3, TODAY)
        assert len(first['data']) == 3
        assert (first['page'], first['limit'], first['total'], first['total_pages']) == (1, 3, 4, 2)
        assert first['has_more'] is True

        second = list_contracts(seed.superadmin, {}, 2, 3, TODAY)
        assert len(second['data']) == 1
        assert second['has_more'] is False
        assert set(_ids(first)).isdisjoint(_ids(second))

    def test_defaults_and_cap(self, app, seed):
        assert list_contracts(seed.superadmin, {}, None, None, TODAY)['limit'] == app.config['CONTRACTS_PER_PAGE']
        assert list_contracts(seed.superadmin, {}, 0, 5000, TODAY)['limit'] == app.config['CONTRACTS_MAX_PER_PAGE']

    def test_empty_result(self, seed):
        result = list_contracts(seed.superadmin, {}, 1, 10, TODAY)
        assert result == {'data': [], 'page': 1, 'limit': 10, 'total': 0, 'total_pages': 0, 'has_more': False}


class TestFilters:

    def test_display_status_filter_honours_end_date(self, seed, make_contract):
        ended = make_contract(end_date="2025-02-28")
        running = make_contract(end_date="2025-06-30")
        open_ended = make_contract()

        ended_ids = _ids(list_contracts(seed.superadmin, {'status': 'CONTRACT_ENDED'}, 1, 10, TODAY))
        assert ended_ids == [ended.id]
        waiting = _ids(list_contracts(seed.superadmin, {'status': 'waiting_lecturer'}, 1, 10, TODAY))
        assert waiting == [open_ended.id, running.id]
        assert list_contracts(seed.superadmin, {'status': 'DRAFT'}, 1, 10, TODAY)['total'] == 3

    def test_stored_status_filter_ignores_end_date(self, seed, make_contract):
        ended = make_contract(end_date="2025-02-28")
        running = make_contract()
        for contract in (ended, running):
            contracts.override_status(contract.id, "COMPLETED")

        rows = list_contracts(seed.superadmin, {'status': 'COMPLETED'}, 1, 10, TODAY)['data']
        assert [(row['id'], row['display_status']) for row in rows] == [
            (running.id, 'COMPLETED'),
            (ended.id, 'CONTRACT_ENDED'),
        ]
        ended_only = list_contracts(seed.superadmin, {'status': 'CONTRACT_ENDED'}, 1, 10, TODAY)
        assert _ids(ended_only) == [ended.id]

    def test_unknown_status_filter(self, seed):
        with pytest.raises(ValidationError):
            list_contracts(seed.superadmin, {'status': 'ARCHIVED'}, 1, 10, TODAY)

    def test_search_by_lecturer(self, seed, spread):
        own, other, business, mixed = spread
        assert _ids(list_contracts(seed.superadmin, {'q': 'sophea'}, 1, 10, TODAY)) == [other.id]
        assert list_contracts(seed.superadmin, {'q': 'SOK DARA'}, 1, 10, TODAY)['total'] == 3

    def test_term_filter(self, seed, make_contract):
        make_contract(term="2")
        assert list_contracts(seed.superadmin, {'term': '2'}, 1, 10, TODAY)['total'] == 1


class TestPresentation:

    def test_rows_carry_display_status(self, seed, make_contract):
        make_contract(end_date="2025-01-31")
        row = list_contracts(seed.superadmin, {}, 1, 10, TODAY)['data'][0]
        assert row['status'] == 'DRAFT'
        assert row['display_status'] == 'CONTRACT_ENDED'
        assert row['total_hours'] == 40

    def test_rate_visible_to_staff(self, seed, make_contract):
        make_contract()
        row = list_contracts(seed.admin, {}, 1, 10, TODAY)['data'][0]
        assert row['hourly_rate_usd'] == 25.0

    def test_rate_hidden_from_lecturer(self, seed, make_contract):
        make_contract()
        row = list_contracts(seed.lecturer, {}, 1, 10, TODAY)['data'][0]
        assert 'hourly_rate_usd' not in row

    def test_rate_found_by_email(self, seed, make_contract):
        make_contract(lecturer=seed.other_lecturer)
        make_contract(lecturer=seed.other_lecturer)
        rows = list_contracts(seed.management, {}, 1, 10, TODAY)['data']
        assert [r['hourly_rate_usd'] for r in rows] == [18.0, 18.0]

    def test_unknown_rate_is_null(self, seed, make_contract):
        seed.lecturer.display_name = "Dr. Nobody Known"
        seed.lecturer.email = "nobody@university.edu.kh"
        make_contract()
        row = list_contracts(seed.superadmin, {}, 1, 10, TODAY)['data'][0]
        assert row['hourly_rate_usd'] is None
