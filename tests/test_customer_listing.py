"""Tests for customer listing: filters, sorting, paging and CSV rows."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from loyalty_insights.analyses.customer_insight import build_customer_insights
from loyalty_insights.analyses.customer_listing import (
    CSV_HEADERS,
    SortField,
    SortOrder,
    filter_and_sort,
    listing_rows,
    paginate,
)
from loyalty_insights.analyses.segmentation import SpendingTier
from loyalty_insights.errors import ValidationError
from loyalty_insights.foundation import (
    Customer,
    CustomerStatus,
    LoyaltyAccount,
    Transaction,
)

NOW = datetime(2024, 6, 30, 12, 0)


@pytest.fixture
def insights():
    customers = [
        Customer("C1", "ALPHA01", "Zoe", "Adams", NOW - timedelta(days=100), email="zoe@example.com"),
        Customer("C2", "BRAVO02", "Ann", "Baker", NOW - timedelta(days=50)),
        Customer("C3", "CHARLIE3", "Max", "Cole", NOW - timedelta(days=10), status=CustomerStatus.INACTIVE),
        Customer("C4", "DELTA04", "Bob", "Dunn", NOW - timedelta(days=5), phone="555-0101"),
    ]
    transactions = [
        Transaction("T1", "C1", "M1", Decimal("300"), NOW - timedelta(days=2)),
        Transaction("T2", "C2", "M1", Decimal("80"), NOW - timedelta(days=20)),
        Transaction("T3", "C3", "M1", Decimal("20"), NOW - timedelta(days=1)),
    ]
    accounts = {
        "C1": LoyaltyAccount("C1", "M1", current_points=300),
        "C2": LoyaltyAccount("C2", "M1", current_points=80),
        "C3": LoyaltyAccount("C3", "M1", current_points=20),
    }
    return build_customer_insights(customers, transactions, NOW, accounts=accounts)


def ids(items):
    return [item.customer_id for item in items]


class TestFilterAndSort:
    def test_default_sort_by_name(self, insights):
        assert ids(filter_and_sort(insights)) == ["C2", "C4", "C3", "C1"]

    def test_search_matches_name_email_and_code(self, insights):
        assert ids(filter_and_sort(insights, search="baker")) == ["C2"]
        assert ids(filter_and_sort(insights, search="ZOE@")) == ["C1"]
        assert ids(filter_and_sort(insights, search="delta")) == ["C4"]

    def test_status_filter(self, insights):
        assert ids(filter_and_sort(insights, status=CustomerStatus.INACTIVE)) == ["C3"]

    def test_tier_filter_uses_unfiltered_average(self, insights):
        # average = 400 / 4 = 100
        assert ids(filter_and_sort(insights, tier=SpendingTier.HIGH)) == ["C1"]
        assert ids(filter_and_sort(insights, tier=SpendingTier.MEDIUM)) == ["C2"]
        assert ids(filter_and_sort(insights, tier=SpendingTier.LOW, sort_by=SortField.TOTAL_SPENT)) == ["C4", "C3"]

    def test_tier_filter_combined_with_status(self, insights):
        result = filter_and_sort(insights, status=CustomerStatus.ACTIVE, tier=SpendingTier.LOW)
        assert ids(result) == ["C4"]

    def test_sort_by_total_spent_desc(self, insights):
        result = filter_and_sort(insights, sort_by=SortField.TOTAL_SPENT, order=SortOrder.DESC)
        assert ids(result) == ["C1", "C2", "C3", "C4"]

    def test_sort_by_points(self, insights):
        assert ids(filter_and_sort(insights, sort_by=SortField.LOYALTY_POINTS)) == ["C4", "C3", "C2", "C1"]

    def test_sort_by_last_visit_puts_never_visited_first(self, insights):
        result = filter_and_sort(insights, sort_by=SortField.LAST_VISIT)
        assert ids(result) == ["C4", "C2", "C1", "C3"]

    def test_sort_by_created_at_desc(self, insights):
        result = filter_and_sort(insights, sort_by="created_at", order="desc")
        assert ids(result) == ["C4", "C3", "C2", "C1"]


class TestPaginate:
    def test_pages(self, insights):
        page = paginate(insights, page=2, page_size=3)
        assert ids(page.items) == ["C4"]
        assert page.total_items == 4
        assert page.total_pages == 2

    def test_default_page_size_is_ten(self, insights):
        page = paginate(insights)
        assert page.page_size == 10
        assert len(page.items) == 4
        assert page.total_pages == 1

    def test_page_past_end_is_empty(self, insights):
        assert paginate(insights, page=5).items == []

    def test_empty_listing_has_no_pages(self):
        assert paginate([]).total_pages == 0

    def test_page_must_be_positive(self, insights):
        with pytest.raises(ValidationError, match="Page must be at least 1"):
            paginate(insights, page=0)


class TestListingRows:
    def test_row_format(self, insights):
        rows = listing_rows(insights)
        assert len(CSV_HEADERS) == len(rows[0]) == 11
        assert rows[0] == (
            "ALPHA01",
            "Zoe",
            "Adams",
            "zoe@example.com",
            "",
            "active",
            "300.00",
            "1",
            "300",
            (NOW - timedelta(days=100)).date().isoformat(),
            (NOW - timedelta(days=2)).date().isoformat(),
        )

    def test_never_visited(self, insights):
        row = listing_rows(insights)[3]
        assert row[4] == "555-0101"
        assert row[6] == "0.00"
        assert row[-1] == "Never"
