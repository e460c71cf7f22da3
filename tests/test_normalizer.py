"""
Normalization Tests

Component extraction, canonical names, keywords and confidence scoring.
"""
import pytest

from packages.domain.normalization import lookup_key, normalize, product_normalizer
from packages.domain.normalization.normalizer import fold_diacritics, format_number
from packages.domain.normalization.similarity import (
    jaccard_similarity,
    levenshtein_distance,
    name_similarity,
)


class TestFreshMilk:
    """The canonical example: fresh milk with brand, size and fat."""

    def setup_method(self):
        self.product = normalize("Прясно мляко Верея 1л 3.6%")

    def test_components(self):
        components = self.product.components
        assert components.base_product == "мляко"
        assert components.type == "прясно"
        assert components.brand == "Верея"
        assert components.size == 1.0
        assert components.unit == "л"
        assert components.fat_content_pct == 3.6
        assert components.barcode is None

    def test_names(self):
        assert self.product.normalized_name == "мляко прясно Верея 3.6% 1л"
        assert self.product.display_name == "Мляко прясно Верея 3.6% 1 л"

    def test_confidence(self):
        assert self.product.confidence == 0.95

    def test_keywords_include_synonyms(self):
        keywords = self.product.keywords
        assert keywords[0] == "мляко"
        assert "milk" in keywords
        assert "верея" in keywords
        assert "прясно" in keywords
        assert "1л" in keywords
        assert len(keywords) == len(set(keywords))


class TestComponentExtraction:
    def test_yogurt(self):
        product = normalize("Кисело мляко Верея 2% 400г")
        assert product.normalized_name == "мляко кисело Верея 2% 400г"

    def test_zero_fat_is_kept(self):
        product = normalize("Кисело мляко Верея 0% 400г")
        assert product.components.fat_content_pct == 0.0
        assert product.normalized_name == "мляко кисело Верея 0% 400г"
        assert product.display_name == "Мляко кисело Верея 0% 400 г"
        assert product.confidence == 0.95

    def test_tomato_paste_beats_tomato(self):
        product = normalize("Доматена паста 140г")
        assert product.components.base_product == "доматена паста"

    def test_toothpaste_is_not_food(self):
        product = normalize("Паста за зъби Colgate 75мл")
        assert product.components.base_product == "паста за зъби"
        assert product.components.brand == "Colgate"

    @pytest.mark.parametrize("raw,size,unit", [
        ("Вода Девин 1.5 литра", 1.5, "л"),
        ("Сок портокал 330ml", 330.0, "мл"),
        ("Ориз 1кг", 1.0, "кг"),
        ("Сирене 0,5 kg", 0.5, "кг"),
        ("Яйца размер M 10бр", 10.0, "бр"),
    ])
    def test_units_are_canonical(self, raw, size, unit):
        components = product_normalizer.parse(raw)
        assert components.size == size
        assert components.unit == unit

    def test_barcode(self):
        components = product_normalizer.parse("Шоколад Milka 100г 3800123456789")
        assert components.barcode == "3800123456789"
        assert components.brand == "Milka"

    def test_attributes(self):
        components = product_normalizer.parse("Мляко BIO безлактозно 1л")
        assert "био" in components.attributes
        assert "безлактозно" in components.attributes

    def test_unknown_product_uses_residual_text(self):
        components = product_normalizer.parse("Zxq Wrt 200г")
        assert components.base_product == "zxq wrt"

    def test_size_only_falls_back(self):
        components = product_normalizer.parse("500г")
        assert components.base_product == "продукт"

    def test_minimal_confidence(self):
        assert normalize("Zxq").confidence == 0.5


class TestDeterminism:
    def test_same_components_same_name(self):
        first = normalize("Прясно мляко Верея 1л 3.6%")
        second = normalize("ПРЯСНО  МЛЯКО  ВЕРЕЯ 1 л 3.6 %")
        assert first.components == second.components
        assert first.normalized_name == second.normalized_name

    def test_repeatable(self):
        names = {normalize("Хляб Добруджа 500г").normalized_name for _ in range(5)}
        assert len(names) == 1


class TestTextHelpers:
    def test_fold_keeps_cyrillic_short_i(self):
        assert fold_diacritics("йогурт") == "йогурт"

    def test_fold_strips_latin_marks(self):
        assert fold_diacritics("Crème brûlée") == "Creme brulee"

    def test_lookup_key(self):
        assert lookup_key("  Кока-Кола  0,5Л ") == "кока кола 0 5л"

    def test_format_number(self):
        assert format_number(1.0) == "1"
        assert format_number(3.60) == "3.6"


class TestSimilarity:
    def test_levenshtein(self):
        assert levenshtein_distance("мляко", "млеко") == 1
        assert levenshtein_distance("", "abc") == 3

    def test_name_similarity_bounds(self):
        assert name_similarity("", "") == 1.0
        assert name_similarity("abc", "ABC") == 1.0
        assert name_similarity("abc", "xyz") == 0.0

    def test_jaccard(self):
        assert jaccard_similarity(["a", "b"], ["B", "c"]) == pytest.approx(1 / 3)
        assert jaccard_similarity([], []) == 0.0
