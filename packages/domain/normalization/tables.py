"""
Lookup tables for Bulgarian grocery product names

Everything here is ORDER-SIGNIFICANT. Brand and base-product rules are
evaluated top to bottom and the first hit wins, so more specific entries
must stay above the generic ones that would otherwise swallow them
(e.g. "доматена паста" above "домат", "паста за зъби" above any food).
"""
import re
from typing import Dict, List, NamedTuple, Pattern, Tuple


class BaseProductRule(NamedTuple):
    """One base-product extraction rule; `group` is informational only"""
    group: str
    product: str
    pattern: Pattern


class AttributeRule(NamedTuple):
    attribute: str
    pattern: Pattern


def _rule(group: str, product: str, pattern: str) -> BaseProductRule:
    return BaseProductRule(group, product, re.compile(pattern, re.IGNORECASE))


# Brands per domain. Lookup order is dairy, meat, beverages, snacks,
# personal care, general.
KNOWN_BRANDS: Dict[str, List[str]] = {
    "dairy": [
        "верея", "vereja", "vereia",
        "милковия", "milkovia",
        "бор чвор", "bor cvor",
        "валио", "valio",
        "бдс", "bds",
        "родопско", "rodopsko",
        "загора", "zagora",
        "балканика", "balkanika",
        "витоша", "vitosha",
    ],
    "meat": [
        "маджаров", "madjarov",
        "тандем", "tandem",
        "дунав", "dunav",
        "свиленград", "svilengrad",
        "елит", "elit",
        "елена", "elena",
    ],
    "beverages": [
        "coca cola", "coca-cola", "кока кола",
        "pepsi", "пепси",
        "fanta", "фанта",
        "sprite", "спрайт",
        "bankya", "банкя",
        "devin", "девин",
        "gorna banya", "горна баня",
        "каменица", "kamenitsa",
    ],
    "snacks": [
        "кириешки", "kirieshki",
        "chipita", "чипита",
        "nestle", "нестле",
        "milka", "милка",
        "ritter sport", "ритер спорт",
        "heinz",
    ],
    "personal_care": [
        "pantene",
        "colgate",
        "nivea",
    ],
    "general": [
        "vita", "вита",
        "danone", "данон",
        "alpro", "алпро",
        "arla", "арла",
    ],
}

ALL_BRANDS: Tuple[str, ...] = tuple(
    brand for domain in ("dairy", "meat", "beverages", "snacks", "personal_care", "general")
    for brand in KNOWN_BRANDS[domain]
)

# Product type keywords keyed by base product; first contained entry wins
PRODUCT_TYPES: Dict[str, List[str]] = {
    "мляко": ["прясно", "кисело", "bio", "био", "lactose free", "безлактозно"],
    "сирене": ["бяло", "yellow", "жълто", "крема", "извара"],
    "кашкавал": ["пресован", "traditional", "традиционен"],
    "масло": ["краве", "cow", "растително", "слънчоглед"],
    "хляб": ["бял", "черен", "пълнозърнест", "ръжен"],
    "яйца": ["от свободни", "био", "размер l", "размер m", "размер s"],
}

# Transliterations and common misspellings used as extra match keywords
PRODUCT_SYNONYMS: Dict[str, List[str]] = {
    "мляко": ["млеко", "milk", "mleko"],
    "хляб": ["bread", "hlqb", "хлqб", "hleb"],
    "масло": ["butter", "oil"],
    "сирене": ["cheese", "sirene", "white cheese"],
    "кашкавал": ["kashkaval", "yellow cheese"],
    "яйца": ["eggs", "jajca", "яйце"],
    "вода": ["water", "voda"],
    "сок": ["juice", "sok"],
    "месо": ["meat", "meso"],
    "риба": ["fish", "riba"],
    "плодове": ["fruits", "plodove"],
    "зеленчуци": ["vegetables", "zelenchutsi"],
}

# Spelling variant -> canonical unit (л, мл, кг, г, бр)
UNIT_MAPPINGS: Dict[str, str] = {
    "л": "л",
    "литра": "л",
    "литър": "л",
    "l": "л",
    "мл": "мл",
    "ml": "мл",
    "кг": "кг",
    "kg": "кг",
    "килограм": "кг",
    "килограма": "кг",
    "г": "г",
    "gr": "г",
    "g": "г",
    "грам": "г",
    "грама": "г",
    "бр": "бр",
    "бр.": "бр",
    "брой": "бр",
    "шт": "бр",
}

# Longest spelling first so "литра" is not read as "л" + "итра"
_UNIT_ALTERNATION = "|".join(
    re.escape(unit) for unit in sorted(UNIT_MAPPINGS, key=len, reverse=True)
)

BARCODE_PATTERN = re.compile(r"(?<!\d)\d{8,14}(?!\d)")
SIZE_PATTERN = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*(" + _UNIT_ALTERNATION + r")(?![^\W\d_])",
    re.IGNORECASE,
)
FAT_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*%")

BASE_PRODUCT_RULES: Tuple[BaseProductRule, ...] = (
    # Condiments, above vegetables so "доматена паста" beats "домат"
    _rule("condiments", "доматена паста", r"\bдоматен[аои]?\s+(паста|пюре)\b"),
    _rule("condiments", "оцет", r"\bоцет\b"),
    _rule("condiments", "кетчуп", r"\bкетчуп\b"),
    _rule("condiments", "майонеза", r"\bмайонеза\b"),
    _rule("condiments", "лютеница", r"\bлютеница\b"),

    # Specific drinks
    _rule("specific_drinks", "кока кола", r"\bкока\s*кола\b"),
    _rule("specific_drinks", "фанта", r"\bфанта\b"),
    _rule("specific_drinks", "спрайт", r"\bспрайт\b"),

    # Specific foods
    _rule("specific_foods", "шоколад", r"\bшоколад\b"),
    _rule("specific_foods", "пица", r"\bпица\b"),
    _rule("specific_foods", "баница", r"\bбаница\b"),
    _rule("specific_foods", "мусака", r"\bмусака\b"),

    # Household
    _rule("household", "препарат", r"\bпрепарат\b"),
    _rule("household", "прах за пране", r"\bпрах\b"),
    _rule("household", "тоалетна хартия", r"\bтоалетна\s+хартия\b"),
    _rule("household", "торбички", r"\bторбички\b"),
    _rule("household", "белина", r"\bбелина\b"),

    # Personal care
    _rule("personal_care", "шампоан", r"\bшампоан\b"),
    _rule("personal_care", "паста за зъби", r"\bпаста\s+(за\s+)?зъби\b"),
    _rule("personal_care", "дезодорант", r"\bдезодорант\b"),
    _rule("personal_care", "крем", r"\bкрем\b"),
    _rule("personal_care", "сапун", r"\bсапун\b"),

    # Dairy
    _rule("dairy", "мляко", r"\bмл[ея]ко\b"),
    _rule("dairy", "сирене", r"\bсирене\b"),
    _rule("dairy", "кашкавал", r"\bкашкавал\b"),
    _rule("dairy", "йогурт", r"\bйогурт\b"),
    _rule("dairy", "масло", r"\bмасло\b(?!.*олио)"),
    _rule("dairy", "извара", r"\bизвара\b"),
    _rule("dairy", "крема", r"\bкрема\b"),
    _rule("dairy", "сметана", r"\bсметана\b"),
    _rule("dairy", "айран", r"\bайр[ая]н\b"),

    # Meat
    _rule("meat", "месо", r"\bмесо\b"),
    _rule("meat", "пилешко", r"\bпилешко\b|\bпиле\b"),
    _rule("meat", "свинско", r"\bсвинско\b|\bсвински\b|\bсвинска\b"),
    _rule("meat", "говеждо", r"\bговеждо\b|\bговежд"),
    _rule("meat", "салам", r"\bсалам\b"),
    _rule("meat", "шунка", r"\bшунка\b"),
    _rule("meat", "кебап", r"\bкебап"),
    _rule("meat", "луканка", r"\bлуканка\b"),
    _rule("meat", "суджук", r"\bсуджук\b"),
    _rule("meat", "бекон", r"\bбекон\b"),
    _rule("meat", "наденица", r"\bнаденица\b"),

    # Fish
    _rule("fish", "риба", r"\bриба\b"),
    _rule("fish", "тон", r"\bтон\b"),
    _rule("fish", "сьомга", r"\bсьомга\b"),
    _rule("fish", "скумрия", r"\bскумрия\b"),

    # Eggs
    _rule("eggs", "яйца", r"\bя[йи]ца\b"),

    # Bread and bakery
    _rule("bakery", "хляб", r"\bхл[ея]б\b"),
    _rule("bakery", "питка", r"\bпитка\b"),
    _rule("bakery", "кифла", r"\bкифл"),
    _rule("bakery", "франзела", r"\bфранзела\b"),
    _rule("bakery", "багета", r"\bбагета\b"),
    _rule("bakery", "козунак", r"\bкозунак\b"),
    _rule("bakery", "погача", r"\bпогача\b"),

    # Vegetables
    _rule("vegetables", "домат", r"\bдомат"),
    _rule("vegetables", "краставица", r"\bкраставиц"),
    _rule("vegetables", "чушка", r"\bчушк"),
    _rule("vegetables", "лук", r"\bлук\b"),
    _rule("vegetables", "картоф", r"\bкартоф"),
    _rule("vegetables", "моркови", r"\bморкови\b"),
    _rule("vegetables", "зеле", r"\bзеле\b|\bзелка\b"),
    _rule("vegetables", "чесън", r"\bчесън\b"),
    _rule("vegetables", "патладжан", r"\bпатладжан\b"),
    _rule("vegetables", "тиквички", r"\bтиквичк"),

    # Fruits
    _rule("fruits", "ябълка", r"\bябълк"),
    _rule("fruits", "банан", r"\bбанан"),
    _rule("fruits", "портокал", r"\bпортокал"),
    _rule("fruits", "грозде", r"\bгрозде\b"),
    _rule("fruits", "круша", r"\bкруша\b"),
    _rule("fruits", "праскова", r"\bпраскова\b"),
    _rule("fruits", "кайсия", r"\bкайсия\b"),
    _rule("fruits", "череша", r"\bчереша\b"),
    _rule("fruits", "ягода", r"\bягода\b"),
    _rule("fruits", "диня", r"\bдиня\b"),
    _rule("fruits", "пъпеш", r"\bпъпеш\b"),
    _rule("fruits", "лимон", r"\bлимон"),
    _rule("fruits", "мандарина", r"\bмандарин"),

    # Staples
    _rule("staples", "захар", r"\bзахар\b"),
    _rule("staples", "сол", r"\bсол\b"),
    _rule("staples", "брашно", r"\bбрашно\b"),
    _rule("staples", "ориз", r"\bориз\b"),
    _rule("staples", "макарони", r"\bмакарони\b"),
    _rule("staples", "спагети", r"\bспагети\b"),
    _rule("staples", "фиде", r"\bфиде\b"),
    _rule("staples", "олио", r"\bолио\b"),
    _rule("staples", "зехтин", r"\bзехтин\b"),

    # Drinks
    _rule("drinks", "вода", r"\bвода\b"),
    _rule("drinks", "сок", r"\bсок\b"),
    _rule("drinks", "кафе", r"\bкафе\b"),
    _rule("drinks", "чай", r"\bчай\b"),
    _rule("drinks", "бира", r"\bбира\b"),
    _rule("drinks", "вино", r"\bвино\b"),
    _rule("drinks", "какао", r"\bкакао\b"),

    # Snacks
    _rule("snacks", "чипс", r"\bчипс\b"),
    _rule("snacks", "бисквити", r"\bбисквит"),
    _rule("snacks", "вафли", r"\bвафл"),
    _rule("snacks", "бонбони", r"\bбонбон"),
    _rule("snacks", "кекс", r"\bкекс\b"),
    _rule("snacks", "ядки", r"\bядк"),
)

# Independent attribute patterns; every match is kept
ATTRIBUTE_RULES: Tuple[AttributeRule, ...] = tuple(
    AttributeRule(attribute, re.compile(pattern, re.IGNORECASE))
    for attribute, pattern in (
        ("био", r"\bbio\b|\bбио\b"),
        ("безлактозно", r"lactose free|безлактозно"),
        ("пълномаслено", r"пълномаслено|full fat"),
        ("нископроцентно", r"нископроцентно|low fat"),
        ("пълнозърнест", r"пълнозърнест|whole grain"),
        ("без глутен", r"gluten free|без глутен"),
        ("веган", r"веган|vegan"),
        ("органик", r"органик|organic"),
    )
)

FALLBACK_PRODUCT = "продукт"
