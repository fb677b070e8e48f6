"""
Filter Composer Tests
=====================
Composition of text, facets, date range and role scope over record sets.
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from models.enums import FunnelType, Role
from models.records import FunnelRecord
from services import filter_composer
from services.filter_composer import DateRange, FilterCriteria, RecordSchema

SCHEMA = RecordSchema(
    search_fields=('name', 'company'),
    facet_fields={'stage': 'stage_id'},
    date_field='expected_close_date',
)


def _deal(record_id, stage_id, name="Deal", company="Acme", close=None, owner="1", amount="1000"):
    probabilities = {"NEW": 20, "PROPOSAL": 60, "NEGOTIATION": 80, "WON": 100, "LOST": 0}
    return FunnelRecord(
        id=record_id,
        funnel_type=FunnelType.DEAL,
        stage_id=stage_id,
        probability=probabilities.get(stage_id, 40),
        owner_id=owner,
        expected_close_date=close,
        amount=Decimal(amount),
        name=name,
        company=company,
    )


@pytest.fixture
def five_deals():
    return [
        _deal("1", "NEW"),
        _deal("2", "PROPOSAL"),
        _deal("3", "NEGOTIATION"),
        _deal("4", "WON"),
        _deal("5", "LOST"),
    ]


class TestFacets:

    def test_stage_facet_keeps_matching_deals_in_order(self, five_deals):
        criteria = FilterCriteria(facets={'stage': {"PROPOSAL", "NEGOTIATION"}})
        result = filter_composer.apply(five_deals, criteria, SCHEMA)
        assert [d.id for d in result] == ["2", "3"]

    def test_unknown_facet_value_matches_nothing(self, five_deals):
        criteria = FilterCriteria(facets={'stage': {"SIGNED"}})
        assert filter_composer.apply(five_deals, criteria, SCHEMA) == []

    def test_empty_facet_set_is_unconstrained(self, five_deals):
        criteria = FilterCriteria(facets={'stage': set()})
        assert filter_composer.apply(five_deals, criteria, SCHEMA) == five_deals

    def test_facets_and_across_or_within(self):
        records = [
            _deal("1", "PROPOSAL", owner="1"),
            _deal("2", "PROPOSAL", owner="2"),
            _deal("3", "NEW", owner="1"),
        ]
        criteria = FilterCriteria(facets={'stage': ["PROPOSAL", "NEW"], 'owner_id': ["1"]})
        assert [r.id for r in filter_composer.apply(records, criteria, SCHEMA)] == ["1", "3"]

    def test_enum_facet_values_compare_by_value(self):
        records = [{'role': Role.SALE}, {'role': Role.ADMIN}]
        criteria = FilterCriteria(facets={'role': [Role.SALE]})
        assert filter_composer.apply(records, criteria, RecordSchema()) == [{'role': Role.SALE}]

    def test_single_string_facet_is_one_value(self, five_deals):
        criteria = FilterCriteria(facets={'stage': "PROPOSAL"})
        assert criteria.facets['stage'] == frozenset({"PROPOSAL"})
        assert [d.id for d in filter_composer.apply(five_deals, criteria, SCHEMA)] == ["2"]

    def test_single_enum_facet_is_one_value(self):
        criteria = FilterCriteria(facets={'role': Role.SALE})
        assert criteria.facets['role'] == frozenset({"SALE"})


class TestText:

    def test_case_insensitive_substring_on_any_search_field(self):
        records = [_deal("1", "NEW", name="Enterprise License"), _deal("2", "NEW", company="MegaCorp")]
        criteria = FilterCriteria(text="  megacorp ")
        assert [r.id for r in filter_composer.apply(records, criteria, SCHEMA)] == ["2"]

    def test_field_outside_schema_is_not_searched(self):
        records = [{'name': "x", 'email': "lisa@example.com"}]
        schema = RecordSchema(search_fields=('name',))
        assert filter_composer.apply(records, FilterCriteria(text="lisa"), schema) == []


class TestDateRange:

    def test_datetime_bounds_compared_by_date(self):
        records = [
            {'created_at': datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)},
            {'created_at': datetime(2026, 1, 2, 0, 0, tzinfo=timezone.utc)},
            {'created_at': datetime(2025, 12, 31, 23, 0, tzinfo=timezone.utc)},
        ]
        schema = RecordSchema(date_field='created_at')
        date_range = DateRange(start=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))
        assert date_range.start == date(2026, 1, 1)
        result = filter_composer.apply(records, FilterCriteria(date_range=date_range), schema)
        assert result == records[:2]

    def test_datetime_bounds_on_date_values(self):
        date_range = DateRange(
            start=datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc),
            end=datetime(2026, 1, 31, 9, 0, tzinfo=timezone.utc),
        )
        assert date_range.contains(date(2026, 1, 31))
        assert not date_range.contains(date(2026, 2, 1))

    def test_inclusive_bounds(self):
        records = [
            _deal("1", "NEW", close=date(2026, 1, 1)),
            _deal("2", "NEW", close=date(2026, 1, 31)),
            _deal("3", "NEW", close=date(2026, 2, 1)),
        ]
        criteria = FilterCriteria(date_range=DateRange(date(2026, 1, 1), date(2026, 1, 31)))
        assert [r.id for r in filter_composer.apply(records, criteria, SCHEMA)] == ["1", "2"]

    def test_open_ended_range(self):
        records = [_deal("1", "NEW", close=date(2025, 12, 1)), _deal("2", "NEW", close=date(2026, 3, 1))]
        criteria = FilterCriteria(date_range=DateRange(start=date(2026, 1, 1)))
        assert [r.id for r in filter_composer.apply(records, criteria, SCHEMA)] == ["2"]

    def test_missing_date_excluded_by_active_range(self):
        criteria = FilterCriteria(date_range=DateRange(end=date(2026, 1, 1)))
        assert filter_composer.apply([_deal("1", "NEW")], criteria, SCHEMA) == []

    def test_datetime_values_compared_by_date(self):
        records = [{'created_at': datetime(2026, 1, 31, 23, 59, tzinfo=timezone.utc)}]
        schema = RecordSchema(date_field='created_at')
        criteria = FilterCriteria(date_range=DateRange(date(2026, 1, 31), date(2026, 1, 31)))
        assert filter_composer.apply(records, criteria, schema) == records

    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError):
            DateRange(date(2026, 2, 1), date(2026, 1, 1))

    def test_range_without_date_field_rejected(self):
        criteria = FilterCriteria(date_range=DateRange(start=date(2026, 1, 1)))
        with pytest.raises(ValueError):
            filter_composer.apply([{'x': 1}], criteria, RecordSchema())


class TestComposition:

    def test_empty_criteria_is_identity(self, five_deals):
        criteria = FilterCriteria()
        assert criteria.is_empty
        assert filter_composer.apply(five_deals, criteria, SCHEMA) == five_deals

    def test_input_not_mutated(self, five_deals):
        snapshot = list(five_deals)
        filter_composer.apply(five_deals, FilterCriteria(facets={'stage': ["WON"]}), SCHEMA)
        assert five_deals == snapshot

    def test_known_role_scope_sees_everything(self, five_deals):
        criteria = FilterCriteria().with_role_scope(Role.SALE)
        assert filter_composer.apply(five_deals, criteria, SCHEMA) == five_deals

    def test_unknown_role_scope_sees_nothing(self, five_deals):
        criteria = FilterCriteria().with_role_scope("INTERN")
        assert filter_composer.apply(five_deals, criteria, SCHEMA) == []

    def test_criteria_are_immutable(self):
        criteria = FilterCriteria(text="a")
        with pytest.raises(Exception):
            criteria.text = "b"


class TestSort:

    def test_sort_by_amount_descending(self):
        records = [_deal("1", "NEW", amount="10"), _deal("2", "NEW", amount="30"), _deal("3", "NEW", amount="20")]
        result = filter_composer.sort_records(records, 'amount', descending=True)
        assert [r.id for r in result] == ["2", "3", "1"]

    def test_missing_values_sort_last(self):
        records = [_deal("1", "NEW"), _deal("2", "NEW", close=date(2026, 1, 1))]
        assert [r.id for r in filter_composer.sort_records(records, 'expected_close_date')] == ["2", "1"]

    def test_accepts_generator(self):
        records = (_deal(str(i), "NEW", amount=str(i)) for i in (3, 1, 2))
        assert [r.id for r in filter_composer.sort_records(records, 'amount')] == ["1", "2", "3"]


class TestQueryString:

    def test_parse_comma_joined_facets_and_dates(self):
        criteria = filter_composer.criteria_from_query(
            {'q': 'corp', 'stage': 'PROPOSAL, NEGOTIATION', 'from': '2026-01-01', 'to': '2026-01-31'},
            ['stage', 'owner_id'],
        )
        assert criteria.text == 'corp'
        assert criteria.facets['stage'] == frozenset({'PROPOSAL', 'NEGOTIATION'})
        assert 'owner_id' not in criteria.facets
        assert criteria.date_range == DateRange(date(2026, 1, 1), date(2026, 1, 31))

    def test_unknown_params_ignored(self):
        criteria = filter_composer.criteria_from_query({'role_scope': 'ADMIN', 'other': 'x'}, ['stage'])
        assert criteria.is_empty

    def test_bad_date_rejected(self):
        with pytest.raises(ValueError):
            filter_composer.criteria_from_query({'from': 'yesterday'}, [])

    def test_trailing_text_after_date_rejected(self):
        with pytest.raises(ValueError):
            filter_composer.criteria_from_query({'from': '2026-01-01garbage'}, [])

    def test_iso_datetime_param_keeps_its_date(self):
        criteria = filter_composer.criteria_from_query({'to': '2026-01-31T18:30:00'}, [])
        assert criteria.date_range == DateRange(end=date(2026, 1, 31))

    def test_round_trip(self):
        params = {'q': 'corp', 'stage': 'NEGOTIATION,PROPOSAL', 'from': '2026-01-01'}
        criteria = filter_composer.criteria_from_query(params, ['stage'])
        assert filter_composer.to_query_params(criteria) == params

    def test_role_scope_never_encoded(self):
        criteria = FilterCriteria(text="x").with_role_scope(Role.ADMIN)
        assert filter_composer.to_query_params(criteria) == {'q': 'x'}
