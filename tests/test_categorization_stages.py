"""
Categorization Stage Tests

Static dictionary, keyword rules and retailer private-label patterns.
"""
import pytest

from packages.domain.categorization.category_cache import CategoryCache, category_cache
from packages.domain.categorization.rule_matcher import KeywordRule, RuleMatcher, rule_matcher
from packages.domain.categorization.schemas import CategorizationMethod, CategoryId, category_name
from packages.domain.categorization.store_patterns import find_store_profile, match_store_pattern
from packages.domain.normalization import lookup_key


class TestCategoryCache:
    def test_exact_hit(self):
        hit = category_cache.lookup("айрян")
        assert hit.category_id == CategoryId.BASIC_FOODS
        assert hit.confidence == 1.0
        assert hit.method == CategorizationMethod.CACHE
        assert hit.matched_key == "айрян"

    def test_longest_entry_wins(self):
        hit = category_cache.lookup(lookup_key("Прясно мляко Верея 1л"))
        assert hit.matched_key == "прясно мляко"
        assert hit.category_id == CategoryId.BASIC_FOODS

    def test_entry_inside_longer_word(self):
        hit = category_cache.lookup("айрянче верея")
        assert hit.matched_key == "айрян"
        assert hit.category_id == CategoryId.BASIC_FOODS

    def test_short_entry_embedded_in_word(self):
        # plain containment: "сол" fires inside "солети"
        assert category_cache.lookup("солети").matched_key == "сол"

    def test_longer_embedded_entry_beats_shorter(self):
        hit = category_cache.lookup("сладолед минички 60г")
        assert hit.matched_key == "сладолед мини"
        assert hit.category_id == CategoryId.SNACKS

    def test_miss(self):
        assert category_cache.lookup("kinder bueno") is None
        assert category_cache.lookup("") is None

    def test_categories(self):
        assert category_cache.lookup("минерална вода").category_id == CategoryId.DRINKS
        assert category_cache.lookup("шампоан").category_id == CategoryId.PERSONAL_CARE
        assert category_cache.lookup("тоалетна хартия").category_id == CategoryId.HOUSEHOLD

    def test_duplicates_keep_first_category(self):
        cache = CategoryCache([
            (CategoryId.SNACKS, ["царевица"]),
            (CategoryId.BASIC_FOODS, ["царевица"]),
        ])
        assert cache.lookup("царевица").category_id == CategoryId.SNACKS

    def test_stats(self):
        stats = category_cache.get_cache_stats()
        assert stats["total_entries"] == sum(stats["by_category"].values())
        assert set(stats["by_category"]) <= {c.value for c in CategoryId}


class TestRuleMatcher:
    def test_phrase_group_before_staples(self):
        hit = rule_matcher.match("паста за зъби colgate 75мл")
        assert hit.category_id == CategoryId.PERSONAL_CARE
        assert hit.rule_group == "personal_care_phrases"
        assert hit.matched_keyword == "паста за зъби"
        assert hit.confidence == 0.95

    def test_keyword_at_word_start(self):
        hit = rule_matcher.match("домати розови")
        assert hit.category_id == CategoryId.BASIC_FOODS
        assert hit.matched_keyword == "домат"

    def test_keyword_inside_word(self):
        hit = rule_matcher.match("прясномлякото")
        assert hit.rule_group == "dairy"
        assert hit.matched_keyword == "прясно"

    def test_longest_keyword_in_group_reported(self):
        hit = rule_matcher.match("пилешки кебапчета")
        assert hit.rule_group == "meat"
        assert hit.matched_keyword == "кебапче"

    def test_shower_gel_is_personal_care(self):
        hit = rule_matcher.match(lookup_key("Душ гел Nivea 250мл"))
        assert hit.category_id == CategoryId.PERSONAL_CARE

    def test_no_hit(self):
        assert rule_matcher.match("kinder bueno") is None
        assert rule_matcher.match("") is None

    def test_group_order_then_longest_keyword(self):
        matcher = RuleMatcher([
            KeywordRule(CategoryId.SNACKS, "first", ("бар", "шоко", "вафл")),
            KeywordRule(CategoryId.DRINKS, "second", ("шоколадова",)),
        ])
        hit = matcher.match("шоколадова вафла бар")
        assert hit.rule_group == "first"
        assert hit.matched_keyword == "шоко"


class TestStorePatterns:
    def test_lidl_private_label(self):
        hit = match_store_pattern("MILBONA Кисело мляко 400г", "LIDL България")
        assert hit.category_id == CategoryId.BASIC_FOODS
        assert hit.subcategory == "dairy"
        assert hit.store == "LIDL"
        assert hit.confidence == 0.85

    def test_store_name_case_insensitive(self):
        hit = match_store_pattern("PIRATO Tortilla Chips", "Lidl Дружба")
        assert hit.category_id == CategoryId.SNACKS
        assert hit.category_name == category_name(CategoryId.SNACKS)

    def test_unknown_store(self):
        assert match_store_pattern("PIRATO Tortilla Chips", "Магазин Ивана") is None
        assert match_store_pattern("PIRATO Tortilla Chips", None) is None

    def test_label_of_other_chain_ignored(self):
        assert match_store_pattern("PIRATO Tortilla Chips", "Kaufland") is None

    @pytest.mark.parametrize("store,key", [
        ("KAUFLAND Младост", "KAUFLAND"),
        ("Billa", "BILLA"),
        ("Фантастико", None),
        ("FANTASTICO 12", "FANTASTICO"),
    ])
    def test_find_store_profile(self, store, key):
        profile = find_store_profile(store)
        assert (profile.key if profile else None) == key
