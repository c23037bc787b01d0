"""Tests for paginated, sortable, owner-scoped queries."""

from __future__ import annotations

from decimal import Decimal

import pytest

from binstore.core.dialect import PostgreSQLDialect, SQLiteDialect, SqlServerDialect
from binstore.core.errors import InvalidPageError, TranslationError
from binstore.core.paging import (
    ORDER_BY_PARAM,
    PAGE_OFFSET_PARAM,
    PAGE_SIZE_PARAM,
    OwnershipScope,
    PageQueryBuilder,
    PaginatedRequest,
    PaginatedResponse,
    SortDirection,
    combine_where,
)
from binstore.core.predicate import F, WhereClause
from binstore.core.protocols import UserContext
from binstore.core.schema import describe
from tests._support.entities import Gadget, Widget, make_widgets


@pytest.fixture
def builder() -> PageQueryBuilder:
    return PageQueryBuilder(describe(Widget), SQLiteDialect())


# =========================================================================
# Request / response values
# =========================================================================


class TestPaginatedRequest:
    def test_defaults(self) -> None:
        request = PaginatedRequest()
        assert request.page == 1
        assert request.results == 25
        assert request.direction is SortDirection.ASCENDING
        assert request.offset == 0

    def test_offset(self) -> None:
        assert PaginatedRequest(page=3, results=10).offset == 20

    @pytest.mark.parametrize("page, results", [(0, 10), (-1, 10), (1, 0)])
    def test_invalid(self, page: int, results: int) -> None:
        with pytest.raises(InvalidPageError):
            PaginatedRequest(page=page, results=results).validate()


class TestPaginatedResponse:
    @pytest.mark.parametrize("total, size, pages", [(25, 10, 3), (20, 10, 2), (0, 10, 0), (1, 25, 1)])
    def test_total_pages(self, total: int, size: int, pages: int) -> None:
        assert PaginatedResponse(total_items=total, page_size=size, page_number=1).total_pages == pages


# =========================================================================
# Statement building
# =========================================================================


class TestOwnershipScope:
    def test_clause(self) -> None:
        scope = OwnershipScope(describe(Widget), SQLiteDialect())
        assert scope.clause() == '(:UserId IS NULL OR "UserId" = :UserId)'

    def test_postgres_casts_the_null_check(self) -> None:
        scope = OwnershipScope(describe(Widget), PostgreSQLDialect())
        assert scope.clause() == '(CAST(:UserId AS BIGINT) IS NULL OR "UserId" = :UserId)'

    def test_params(self) -> None:
        scope = OwnershipScope(describe(Widget), SQLiteDialect())
        assert scope.params(UserContext(4)) == {"UserId": 4}
        assert scope.params(None) == {"UserId": None}
        assert scope.params(UserContext()) == {"UserId": None}

    def test_unowned_table(self) -> None:
        scope = OwnershipScope(describe(Gadget), SQLiteDialect())
        assert scope.clause() is None
        assert scope.params(UserContext(4)) == {}


class TestCombineWhere:
    def test_fragments(self) -> None:
        assert combine_where() == ""
        assert combine_where(None, "") == ""
        assert combine_where("a", None, "b") == " WHERE a AND b"


class TestPageQueryBuilder:
    def test_sort_key_allow_list(self, builder: PageQueryBuilder) -> None:
        assert builder.sort_key("Name") == "Name"
        assert builder.sort_key("Tags") is None
        assert builder.sort_key("name") is None
        assert builder.sort_key("Name; DROP TABLE Widgets") is None
        assert builder.sort_key(None) is None

    def test_order_by_clause(self, builder: PageQueryBuilder) -> None:
        clause = builder.order_by_clause(SortDirection.DESCENDING)
        assert clause.startswith(
            'ORDER BY CASE WHEN :OrderBy IS NULL THEN "WidgetId" ELSE NULL END DESC'
        )
        assert "CASE WHEN :OrderBy = 'Quantity' THEN \"Quantity\" ELSE NULL END DESC" in clause
        assert clause.endswith('"WidgetId" DESC')

    def test_sql_text_does_not_depend_on_sort_key(self, builder: PageQueryBuilder) -> None:
        a, _ = builder.page_query(PaginatedRequest(order_by="Name"))
        b, _ = builder.page_query(PaginatedRequest(order_by="evil'--"))
        assert a == b

    def test_page_query_params(self, builder: PageQueryBuilder) -> None:
        where = WhereClause('"Quantity" > :w0_Quantity', {"w0_Quantity": 3})
        sql, params = builder.page_query(
            PaginatedRequest(page=2, results=10, order_by="Price"), where, UserContext(9)
        )
        assert sql.startswith(
            'SELECT * FROM "Widgets" WHERE (:UserId IS NULL OR "UserId" = :UserId) '
            'AND "Quantity" > :w0_Quantity ORDER BY'
        )
        assert sql.endswith("LIMIT :PageSize OFFSET :PageOffset")
        assert params == {
            "w0_Quantity": 3,
            "UserId": 9,
            ORDER_BY_PARAM: "Price",
            PAGE_SIZE_PARAM: 10,
            PAGE_OFFSET_PARAM: 10,
        }

    def test_count_query(self, builder: PageQueryBuilder) -> None:
        sql, params = builder.count_query(None, UserContext(9))
        assert sql == (
            'SELECT COUNT(*) FROM "Widgets" WHERE (:UserId IS NULL OR "UserId" = :UserId)'
        )
        assert params == {"UserId": 9}

    def test_sql_server_framing(self) -> None:
        builder = PageQueryBuilder(describe(Widget), SqlServerDialect())
        sql, _ = builder.page_query(PaginatedRequest())
        assert sql.endswith("OFFSET :PageOffset ROWS FETCH NEXT :PageSize ROWS ONLY")

    def test_invalid_page_rejected(self, builder: PageQueryBuilder) -> None:
        with pytest.raises(InvalidPageError):
            builder.page_query(PaginatedRequest(page=0))


# =========================================================================
# Against the database
# =========================================================================


class TestPagingAgainstDatabase:
    def test_pages_cover_all_rows(self, widgets) -> None:
        make_widgets(widgets, 25)
        pages = [widgets.page(PaginatedRequest(page=n, results=10)) for n in (1, 2, 3)]
        assert [len(p.items) for p in pages] == [10, 10, 5]
        assert all(p.total_items == 25 for p in pages)
        assert pages[0].total_pages == 3
        names = [w.Name for p in pages for w in p.items]
        assert names == [f"Widget {i:02d}" for i in range(25)]

    def test_page_past_the_end_is_empty(self, widgets) -> None:
        make_widgets(widgets, 5)
        page = widgets.page(PaginatedRequest(page=4, results=10))
        assert page.items == []
        assert page.total_items == 5

    def test_sort_descending(self, widgets) -> None:
        make_widgets(widgets, 12)
        page = widgets.page(
            PaginatedRequest(results=3, order_by="Quantity", direction=SortDirection.DESCENDING)
        )
        assert [w.Quantity for w in page.items] == [11, 10, 9]

    def test_sort_by_decimal(self, widgets) -> None:
        make_widgets(widgets, 4)
        page = widgets.page(PaginatedRequest(order_by="Price", direction=SortDirection.DESCENDING))
        assert [w.Name for w in page.items] == ["Widget 03", "Widget 02", "Widget 01", "Widget 00"]

    def test_unknown_sort_key_falls_back_to_key(self, widgets) -> None:
        created = make_widgets(widgets, 5)
        page = widgets.page(PaginatedRequest(order_by="Tags; DROP TABLE Widgets"))
        assert [w.WidgetId for w in page.items] == [w.WidgetId for w in created]
        assert widgets.count() == 5

    def test_owner_scope(self, widgets) -> None:
        make_widgets(widgets, 4, UserContext(1))
        make_widgets(widgets, 6, UserContext(2))
        assert widgets.page(PaginatedRequest(), UserContext(1)).total_items == 4
        assert widgets.page(PaginatedRequest(), UserContext(2)).total_items == 6
        assert widgets.page(PaginatedRequest(), UserContext(3)).total_items == 0
        assert widgets.page(PaginatedRequest()).total_items == 10

    def test_by_value_filter(self, widgets) -> None:
        make_widgets(widgets, 6)
        widgets.add(Widget(Name="special", Quantity=3))
        page = widgets.page(PaginatedRequest(by="Quantity", value=3))
        assert page.total_items == 2
        assert {w.Name for w in page.items} == {"Widget 03", "special"}

    def test_by_unknown_field(self, widgets) -> None:
        with pytest.raises(TranslationError):
            widgets.page(PaginatedRequest(by="Bin", value="A1"))

    def test_predicate_and_filter_combine(self, widgets) -> None:
        make_widgets(widgets, 10)
        page = widgets.page(PaginatedRequest(results=2), predicate=F("Quantity") >= 5)
        assert page.total_items == 5
        assert [w.Quantity for w in page.items] == [5, 6]

    def test_decimal_sort_is_numeric(self, widgets) -> None:
        for price in ("9.5", "100", "20"):
            widgets.add(Widget(Name=price, Price=Decimal(price)))
        page = widgets.page(PaginatedRequest(order_by="Price"))
        assert [w.Name for w in page.items] == ["9.5", "20", "100"]
