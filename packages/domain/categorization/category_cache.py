"""
Category Cache - Static dictionary of common Bulgarian products

First deterministic stage of the waterfall: well-known product names map
straight to a budget category with full confidence, no rules or AI needed.

Matching (against the categorizer lookup key):
1. Exact key match
2. Containment anywhere in the key, longest dictionary entry first, then
   declaration order ("прясно мляко" beats "мляко", "айрянче" hits "айрян")

Example:
- "Прясно мляко Верея 1л" → key "прясно мляко верея 1л"
- Hits "прясно мляко" → basic_foods (confidence 1.0)
"""
import re
from collections import Counter
from typing import Dict, List, Optional, Tuple

from packages.domain.categorization.schemas import CacheResult, CategoryId, category_name


BASIC_FOODS = [
    # Хляб
    "хляб", "хляб бял", "хляб черен", "хляб пълнозърнест", "питка", "кифли", "багети",
    # Млечни
    "мляко", "прясно мляко", "кисело мляко", "кашкавал", "сирене", "сирене краве",
    "сирене овче", "извара", "масло", "краве масло", "маргарин", "айрян", "йогурт",
    # Месо и яйца
    "яйца", "пилешко", "пилешко филе", "пилешки бутчета", "свинско", "телешко", "кайма",
    "колбас", "луканка", "шунка", "салам",
    # Основни продукти
    "ориз", "макарони", "спагети", "брашно", "брашно бяло", "брашно пълнозърнесто",
    "царевично брашно", "картофи",
    # Плодове
    "ябълки", "банани", "портокали", "мандарини", "лимони", "круши", "грозде", "праскови",
    "сливи", "кайсии",
    # Зеленчуци
    "домати", "краставици", "чушки", "моркови", "зеле", "лук", "чесън", "патладжани",
    "тиквички", "спанак", "магданоз", "копър",
    # Подправки и сосове
    "олио", "слънчогледово олио", "зехтин", "оцет", "сол", "захар", "мед", "кетчуп",
    "майонеза", "горчица",
]

READY_MEALS = [
    "пица", "сандвич", "банковица", "консерва", "риба консерва", "тунак", "супа",
    "готово ястие", "фалафел", "бургер", "хот дог",
]

DRINKS = [
    "вода", "минерална вода", "газирана вода", "кока-кола", "кока кола", "пепси", "фанта",
    "спрайт", "сок", "портокалов сок", "ябълков сок", "кафе", "нес кафе", "чай", "бира",
    "вино", "ракия", "уиски", "водка",
]

SNACKS = [
    "шоколад", "бонбони", "чипс", "бисквити", "курабии", "сладолед", "сладолед мини",
    "сладолед класик", "вафли", "понички", "кексче", "кроасан", "гризини", "фъстъци",
    "семки", "ядки", "царевица",
]

PERSONAL_CARE = [
    "сапун", "шампоан", "балсам", "паста за зъби", "четка за зъби", "дезодорант",
]

HOUSEHOLD = [
    "тоалетна хартия", "кухненска хартия", "салфетки", "препарат", "течност за чистене",
    "пликове", "торбички", "кибрит", "свещи",
]

# Declaration order matters for equal-length ties
CACHE_TABLE: List[Tuple[CategoryId, List[str]]] = [
    (CategoryId.BASIC_FOODS, BASIC_FOODS),
    (CategoryId.READY_MEALS, READY_MEALS),
    (CategoryId.DRINKS, DRINKS),
    (CategoryId.SNACKS, SNACKS),
    (CategoryId.PERSONAL_CARE, PERSONAL_CARE),
    (CategoryId.HOUSEHOLD, HOUSEHOLD),
]


def _entry_key(entry: str) -> str:
    # Same folding as lookup_key: punctuation becomes a space
    return " ".join(re.sub(r"[^\w\s]|_", " ", entry.lower()).split())


class CategoryCache:
    """
    In-memory product dictionary.

    Usage:
        hit = category_cache.lookup("кисело мляко верея 2 400г")
        if hit:
            print(hit.category_id, hit.matched_key)
    """

    def __init__(self, table: List[Tuple[CategoryId, List[str]]] = CACHE_TABLE):
        self._exact: Dict[str, CategoryId] = {}
        ordered: List[Tuple[int, int, str, CategoryId]] = []
        position = 0
        for category_id, entries in table:
            for entry in entries:
                key = _entry_key(entry)
                if key in self._exact:
                    continue
                self._exact[key] = category_id
                ordered.append((-len(key), position, key, category_id))
                position += 1

        ordered.sort()
        self._contained: List[Tuple[str, CategoryId]] = [
            (key, category_id) for _, _, key, category_id in ordered
        ]

    def lookup(self, key: str) -> Optional[CacheResult]:
        """
        Find a dictionary entry for a lookup key.

        Args:
            key: Categorizer lookup key (already lowercased and folded)

        Returns:
            CacheResult with confidence 1.0, or None on miss
        """
        if not key:
            return None

        category_id = self._exact.get(key)
        if category_id is not None:
            return self._result(key, category_id)

        for entry, category_id in self._contained:
            if entry in key:
                return self._result(entry, category_id)

        return None

    @staticmethod
    def _result(entry: str, category_id: CategoryId) -> CacheResult:
        return CacheResult(
            category_id=category_id,
            category_name=category_name(category_id),
            confidence=1.0,
            matched_key=entry,
        )

    def get_cache_stats(self) -> Dict[str, object]:
        """Total entry count and per-category breakdown"""
        by_category = Counter(category_id.value for category_id in self._exact.values())
        return {
            "total_entries": len(self._exact),
            "by_category": dict(by_category),
        }


# Singleton instance
category_cache = CategoryCache()
