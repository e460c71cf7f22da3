"""
Master-Product Catalog Tests

Fuzzy matcher scoring and the alias → exact → fuzzy → create resolution.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from packages.domain.catalog import (
    CatalogService,
    MasterProductCandidate,
    PriceObservation,
    match_master_product,
    score_candidate,
)
from packages.domain.normalization import normalize

MILK = "Прясно мляко Верея 1л 3.6%"


def milk_candidate(**overrides) -> MasterProductCandidate:
    fields = dict(
        id=11,
        normalized_name="мляко прясно Верея 3.5% 1л",
        display_name="Мляко прясно Верея 3.5% 1 л",
        brand="Верея",
        size=1.0,
        unit="л",
        keywords=["мляко", "верея", "прясно", "1л"],
    )
    fields.update(overrides)
    return MasterProductCandidate(**fields)


def bread_candidate() -> MasterProductCandidate:
    return MasterProductCandidate(
        id=22,
        normalized_name="хляб Добруджа 500г",
        brand="Добруджа",
        size=500.0,
        unit="г",
        keywords=["хляб", "добруджа", "500г"],
    )


class TestMatcher:
    def test_exact_name_short_circuits(self):
        product = normalize(MILK)
        exact = milk_candidate(id=5, normalized_name="МЛЯКО ПРЯСНО ВЕРЕЯ 3.6% 1Л", brand="Other")
        match = match_master_product(product, [bread_candidate(), exact])
        assert match.id == 5
        assert match.score == 1.0

    def test_fuzzy_match(self):
        match = match_master_product(normalize(MILK), [bread_candidate(), milk_candidate()])
        assert match.id == 11
        assert 0.6 < match.score < 1.0

    def test_no_match_below_threshold(self):
        assert match_master_product(normalize(MILK), [bread_candidate()]) is None

    def test_threshold_is_exclusive(self):
        product = normalize(MILK)
        candidate = milk_candidate()
        score = score_candidate(product, candidate)
        assert match_master_product(product, [candidate], threshold=score) is None

    def test_empty_catalog(self):
        assert match_master_product(normalize(MILK), []) is None

    def test_brand_mismatch_lowers_score(self):
        product = normalize(MILK)
        same = score_candidate(product, milk_candidate())
        other = score_candidate(product, milk_candidate(brand="Олимпус"))
        assert other < same

    def test_signals_only_count_when_present(self):
        product = normalize("Zxq")
        bare = MasterProductCandidate(id=1, normalized_name="zxq")
        # Only the name signal applies; identical names score 1.0
        assert score_candidate(product, bare) == pytest.approx(1.0)


@pytest.fixture
def catalog_repo():
    repo = MagicMock()
    repo.find_alias = AsyncMock(return_value=None)
    repo.find_by_normalized_name = AsyncMock(return_value=None)
    repo.list_candidates = AsyncMock(return_value=[])
    repo.create_master_product = AsyncMock(return_value=42)
    repo.upsert_alias = AsyncMock()
    repo.record_price = AsyncMock()
    repo.get_retailer_by_name = AsyncMock(return_value={"id": 3, "name": "Kaufland"})
    return repo


class TestCatalogService:
    async def test_alias_hit(self, catalog_repo, mock_db):
        catalog_repo.find_alias.return_value = 7
        resolved = await CatalogService(catalog_repo).resolve(MILK, mock_db, retailer_id=3)

        assert resolved.master_product_id == 7
        assert resolved.match_source == "alias"
        catalog_repo.find_by_normalized_name.assert_not_awaited()
        catalog_repo.upsert_alias.assert_not_awaited()

    async def test_exact_hit_links_alias(self, catalog_repo, mock_db):
        catalog_repo.find_by_normalized_name.return_value = {
            "id": 9, "normalized_name": "мляко прясно Верея 3.6% 1л", "display_name": None,
        }
        resolved = await CatalogService(catalog_repo).resolve(MILK, mock_db, retailer_id=3)

        assert resolved.master_product_id == 9
        assert resolved.match_source == "exact"
        assert resolved.display_name == "Мляко прясно Верея 3.6% 1 л"
        catalog_repo.upsert_alias.assert_awaited_once()
        assert catalog_repo.upsert_alias.await_args.args[:3] == (9, 3, MILK)

    async def test_fuzzy_hit(self, catalog_repo, mock_db):
        catalog_repo.list_candidates.return_value = [
            {**milk_candidate().model_dump(), "size": Decimal("1.000"), "keywords": ("мляко", "верея")},
        ]
        resolved = await CatalogService(catalog_repo).resolve(MILK, mock_db, category_id="basic_foods")

        assert resolved.master_product_id == 11
        assert resolved.match_source == "fuzzy"
        assert resolved.created is False
        catalog_repo.list_candidates.assert_awaited_once()
        assert catalog_repo.list_candidates.await_args.kwargs["category_id"] == "basic_foods"
        catalog_repo.upsert_alias.assert_not_awaited()

    async def test_creates_when_nothing_matches(self, catalog_repo, mock_db):
        resolved = await CatalogService(catalog_repo).resolve(MILK, mock_db, category_id="basic_foods")

        assert resolved.master_product_id == 42
        assert resolved.created is True
        assert resolved.match_source == "created"
        kwargs = catalog_repo.create_master_product.await_args.kwargs
        assert kwargs["normalized_name"] == "мляко прясно Верея 3.6% 1л"
        assert kwargs["brand"] == "Верея"
        assert kwargs["fat_content_pct"] == 3.6

    async def test_resolve_many_in_order(self, catalog_repo, mock_db):
        catalog_repo.create_master_product.side_effect = [1, 2]
        results = await CatalogService(catalog_repo).resolve_many(
            [MILK, "Хляб Добруджа 500г"], mock_db
        )
        assert [r.master_product_id for r in results] == [1, 2]

    async def test_resolve_retailer(self, catalog_repo, mock_db):
        service = CatalogService(catalog_repo)
        assert await service.resolve_retailer("Kaufland Младост", mock_db) == 3
        assert await service.resolve_retailer("", mock_db) is None

    async def test_record_price(self, catalog_repo, mock_db):
        observation = PriceObservation(
            master_product_id=11, retailer_id=3, unit_price=Decimal("2.49"), quantity=Decimal("2"),
        )
        await CatalogService(catalog_repo).record_price(observation, mock_db)
        kwargs = catalog_repo.record_price.await_args.kwargs
        assert kwargs["unit_price"] == Decimal("2.49")
        assert kwargs["quantity"] == Decimal("2")
