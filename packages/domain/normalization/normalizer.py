"""
Product Normalizer - Parse Bulgarian grocery product strings into components

Pure and deterministic: no I/O, no randomness, no caching of components.
Two raw strings that produce identical components always produce a
byte-identical normalized_name, which the catalog relies on for exact
lookups.

Example:
- Input: "Прясно мляко Верея 1л 3.6%"
- Components: base=мляко, type=прясно, brand=Верея, size=1, unit=л, fat=3.6
- normalized_name: "мляко прясно Верея 3.6% 1л"
- display_name: "Мляко прясно Верея 3.6% 1 л"
- confidence: 0.95
"""
import re
import unicodedata
from typing import List, Optional

import structlog

from packages.domain.normalization.schemas import NormalizedProduct, ProductComponents
from packages.domain.normalization.tables import (
    ALL_BRANDS,
    ATTRIBUTE_RULES,
    BARCODE_PATTERN,
    BASE_PRODUCT_RULES,
    FALLBACK_PRODUCT,
    FAT_PATTERN,
    PRODUCT_SYNONYMS,
    PRODUCT_TYPES,
    SIZE_PATTERN,
    UNIT_MAPPINGS,
)

logger = structlog.get_logger()

_NON_WORD = re.compile(r"[^\w\s]|_")
_BRAND_PATTERNS = tuple(
    (brand, re.compile(r"(?<!\w)" + re.escape(brand) + r"(?!\w)", re.IGNORECASE))
    for brand in ALL_BRANDS
)


def _is_cyrillic(char: str) -> bool:
    return "CYRILLIC" in unicodedata.name(char, "")


def fold_diacritics(text: str) -> str:
    """
    Drop combining marks from Latin letters only.

    Cyrillic letters keep theirs, otherwise й would decay to и.
    """
    decomposed = unicodedata.normalize("NFD", text)
    kept = []
    for char in decomposed:
        if unicodedata.combining(char) and kept and not _is_cyrillic(kept[-1]):
            continue
        kept.append(char)
    return unicodedata.normalize("NFC", "".join(kept))


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def format_number(value: float) -> str:
    """1.0 -> '1', 3.60 -> '3.6'"""
    text = ("%.6f" % value).rstrip("0").rstrip(".")
    return text or "0"


def lookup_key(raw_name: str) -> str:
    """
    Text key used by the categorizer for cache, rule, correction and
    classifier-memo lookups. Keeps every word of the raw name.
    """
    text = fold_diacritics(raw_name).lower()
    return collapse_whitespace(_NON_WORD.sub(" ", text))


def _parse_decimal(text: str) -> float:
    return float(text.replace(",", "."))


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


class ProductNormalizer:
    """
    Table-driven component extraction.

    Usage:
        product = product_normalizer.normalize("Кисело мляко Верея 2% 400г")
        print(product.normalized_name)  # "мляко кисело Верея 2% 400г"
    """

    def parse(self, raw_name: str) -> ProductComponents:
        """
        Extract components from a raw product name.

        Args:
            raw_name: Product text as printed on the receipt

        Returns:
            ProductComponents (never fails; falls back to residual text)
        """
        cleaned = collapse_whitespace(fold_diacritics(raw_name).lower())

        barcode_match = BARCODE_PATTERN.search(cleaned)
        barcode = barcode_match.group(0) if barcode_match else None

        size = None
        unit = None
        size_match = SIZE_PATTERN.search(cleaned)
        if size_match:
            size = _parse_decimal(size_match.group(1))
            raw_unit = size_match.group(2).lower()
            unit = UNIT_MAPPINGS.get(raw_unit, raw_unit)

        fat_match = FAT_PATTERN.search(cleaned)
        fat_content = _parse_decimal(fat_match.group(1)) if fat_match else None

        base_product = self._extract_base_product(cleaned)

        return ProductComponents(
            base_product=base_product,
            brand=self._extract_brand(cleaned),
            type=self._extract_type(cleaned, base_product),
            size=size,
            unit=unit,
            fat_content_pct=fat_content,
            attributes=self._extract_attributes(cleaned),
            barcode=barcode,
        )

    def _extract_brand(self, cleaned: str) -> Optional[str]:
        for brand, pattern in _BRAND_PATTERNS:
            if pattern.search(cleaned):
                return " ".join(_capitalize(word) for word in brand.split(" "))
        return None

    def _extract_base_product(self, cleaned: str) -> str:
        for rule in BASE_PRODUCT_RULES:
            if rule.pattern.search(cleaned):
                return rule.product

        residue = SIZE_PATTERN.sub("", cleaned)
        residue = FAT_PATTERN.sub("", residue)
        residue = collapse_whitespace(residue)
        if not residue:
            logger.debug("base_product_fallback", cleaned=cleaned)
        return residue or FALLBACK_PRODUCT

    def _extract_type(self, cleaned: str, base_product: str) -> Optional[str]:
        for product_type in PRODUCT_TYPES.get(base_product, []):
            if product_type.lower() in cleaned:
                return product_type
        return None

    def _extract_attributes(self, cleaned: str) -> List[str]:
        return [rule.attribute for rule in ATTRIBUTE_RULES if rule.pattern.search(cleaned)]

    @staticmethod
    def _size_token(components: ProductComponents, separator: str = "") -> Optional[str]:
        if components.size and components.unit:
            return f"{format_number(components.size)}{separator}{components.unit}"
        return None

    def build_normalized_name(self, components: ProductComponents) -> str:
        """Field order: base, type, brand, fat%, attributes, size+unit"""
        parts = [components.base_product]
        if components.type:
            parts.append(components.type)
        if components.brand:
            parts.append(components.brand)
        if components.fat_content_pct is not None:
            parts.append(f"{format_number(components.fat_content_pct)}%")
        parts.extend(components.attributes)
        size_token = self._size_token(components)
        if size_token:
            parts.append(size_token)
        return collapse_whitespace(" ".join(p for p in parts if p))

    def build_display_name(self, components: ProductComponents) -> str:
        base = components.base_product
        parts = [base[:1].upper() + base[1:].lower()]
        if components.type:
            product_type = components.type
            if len(product_type) <= 3 and product_type.upper() == product_type:
                parts.append(product_type.upper())
            else:
                parts.append(product_type.lower())
        if components.brand:
            parts.append(components.brand)
        if components.fat_content_pct is not None:
            parts.append(f"{format_number(components.fat_content_pct)}%")
        parts.extend(attribute.lower() for attribute in components.attributes)
        size_token = self._size_token(components, separator=" ")
        if size_token:
            parts.append(size_token)
        return collapse_whitespace(" ".join(p for p in parts if p))

    def build_keywords(self, components: ProductComponents) -> List[str]:
        keywords: List[str] = []

        def add(keyword: Optional[str]) -> None:
            if not keyword:
                return
            keyword = keyword.lower()
            if keyword not in keywords:
                keywords.append(keyword)

        add(components.base_product)
        for synonym in PRODUCT_SYNONYMS.get(components.base_product, []):
            add(synonym)
        if components.brand:
            add(components.brand)
            add(components.brand.replace(" ", ""))
        add(components.type)
        add(self._size_token(components))
        for attribute in components.attributes:
            add(attribute)
        add(components.barcode)

        return [keyword for keyword in keywords if len(keyword) > 1]

    @staticmethod
    def score_confidence(components: ProductComponents) -> float:
        confidence = 0.5
        if components.brand:
            confidence += 0.15
        if components.size and components.unit:
            confidence += 0.15
        if components.type:
            confidence += 0.10
        if components.fat_content_pct is not None:
            confidence += 0.05
        if components.barcode:
            confidence += 0.05
        return round(min(confidence, 1.0), 2)

    def normalize(self, raw_name: str) -> NormalizedProduct:
        """Full pipeline: parse, then derive every canonical form"""
        components = self.parse(raw_name)
        return NormalizedProduct(
            normalized_name=self.build_normalized_name(components),
            display_name=self.build_display_name(components),
            components=components,
            keywords=self.build_keywords(components),
            confidence=self.score_confidence(components),
        )


# Singleton instance
product_normalizer = ProductNormalizer()


def normalize(raw_name: str) -> NormalizedProduct:
    return product_normalizer.normalize(raw_name)
