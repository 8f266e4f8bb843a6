"""Listing: pagination metadata, filters and search."""
import pytest

from tenantcore.core.exceptions import InvalidQueryError
from tenantcore.services.query import normalize_pagination, page_metadata


@pytest.mark.parametrize("page, limit, expected", [
    (None, None, (1, 50)),
    (0, 10, (1, 10)),
    (-3, 10, (1, 10)),
    (2, 0, (2, 1)),
    (2, 1000, (2, 100)),
])
def test_normalize_pagination(page, limit, expected):
    assert normalize_pagination(page, limit) == expected


def test_page_metadata_beyond_the_end():
    assert page_metadata(total=7, page=5, limit=3) == {
        "total": 7,
        "page": 5,
        "limit": 3,
        "total_pages": 3,
        "has_next": False,
        "has_prev": True,
    }


def test_page_metadata_empty():
    meta = page_metadata(total=0, page=1, limit=50)
    assert meta["total_pages"] == 0
    assert meta["has_next"] is False
    assert meta["has_prev"] is False


class TestPagination:

    @pytest.fixture
    def client_ids(self, storage, org_a):
        return {storage.create(org_a, "clients", {"name": f"Client {i}"}).id for i in range(7)}

    def test_pages_cover_every_row_once(self, storage, org_a, client_ids):
        seen = []
        for page in (1, 2, 3):
            result = storage.list(org_a, "clients", page=page, limit=3)
            assert result.total == 7
            assert result.total_pages == 3
            seen.extend(item.id for item in result.items)

        assert len(seen) == 7
        assert set(seen) == client_ids

    def test_metadata(self, storage, org_a, client_ids):
        first = storage.list(org_a, "clients", page=1, limit=3)
        last = storage.list(org_a, "clients", page=3, limit=3)

        assert (first.has_prev, first.has_next) == (False, True)
        assert (last.has_prev, last.has_next) == (True, False)
        assert len(last.items) == 1

    def test_page_beyond_end_is_empty_with_metadata(self, storage, org_a, client_ids):
        result = storage.list(org_a, "clients", page=10, limit=3)

        assert result.items == []
        assert result.total == 7
        assert result.total_pages == 3
        assert result.has_next is False
        assert result.has_prev is True

    def test_limit_is_clamped(self, storage, org_a, client_ids):
        assert storage.list(org_a, "clients", limit=1000).limit == 100
        assert len(storage.list(org_a, "clients", limit=0).items) == 1

    def test_newest_first(self, storage, org_a, client_ids, backdate):
        from tenantcore.models import ClientCompany

        oldest = sorted(client_ids)[0]
        backdate(ClientCompany, oldest, days=3)

        items = storage.list(org_a, "clients", limit=100).items
        assert items[-1].id == oldest


class TestFilters:

    @pytest.fixture(autouse=True)
    def clients(self, storage, org_a):
        storage.create(org_a, "clients", {"name": "Austin Tech", "industry": "Tech", "city": "Austin"})
        storage.create(org_a, "clients", {"name": "Boston Tech", "industry": "Tech", "city": "Boston"})
        storage.create(org_a, "clients", {"name": "Austin Retail", "industry": "Retail", "city": "Austin"})
        storage.create(org_a, "clients", {"name": "Nowhere"})

    def test_filters_are_conjunctive(self, storage, org_a):
        result = storage.list(org_a, "clients", filters={"industry": "Tech", "city": "Austin"})

        assert result.total == 1
        assert result.items[0].name == "Austin Tech"

    def test_single_filter(self, storage, org_a):
        assert storage.list(org_a, "clients", filters={"industry": "Tech"}).total == 2

    def test_none_matches_null(self, storage, org_a):
        result = storage.list(org_a, "clients", filters={"industry": None})
        assert [item.name for item in result.items] == ["Nowhere"]

    def test_undeclared_filter_field_is_rejected(self, storage, org_a):
        with pytest.raises(InvalidQueryError):
            storage.list(org_a, "clients", filters={"notes": "x"})

    def test_filter_and_search_combine(self, storage, org_a):
        result = storage.list(org_a, "clients", filters={"city": "Austin"}, search="retail")
        assert [item.name for item in result.items] == ["Austin Retail"]


class TestSearch:

    def test_case_insensitive_across_fields(self, storage, org_a):
        storage.create(org_a, "clients", {"name": "Acme"})
        storage.create(org_a, "clients", {"name": "Globex", "website": "https://ACME.example"})
        storage.create(org_a, "clients", {"name": "Initech", "country": "Canada"})

        result = storage.list(org_a, "clients", search="acme")
        assert sorted(item.name for item in result.items) == ["Acme", "Globex"]

    def test_blank_search_is_ignored(self, storage, org_a):
        storage.create(org_a, "clients", {"name": "Acme"})
        assert storage.list(org_a, "clients", search="   ").total == 1

    def test_wildcards_match_literally(self, storage, org_a):
        storage.create(org_a, "clients", {"name": "100% Organic"})
        storage.create(org_a, "clients", {"name": "1000 Organic"})
        storage.create(org_a, "clients", {"name": "snake_case"})
        storage.create(org_a, "clients", {"name": "snakexcase"})

        assert [i.name for i in storage.list(org_a, "clients", search="100%").items] == ["100% Organic"]
        assert [i.name for i in storage.list(org_a, "clients", search="e_c").items] == ["snake_case"]

    def test_search_on_contacts(self, storage, org_a):
        storage.create(org_a, "contacts", {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"})
        storage.create(org_a, "contacts", {"first_name": "Alan", "last_name": "Turing"})

        result = storage.list(org_a, "contacts", search="LOVE")
        assert [item.first_name for item in result.items] == ["Ada"]
