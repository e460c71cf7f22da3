"""
Rule Matcher - Ordered keyword rules for Bulgarian product names

Rules are tagged groups evaluated top to bottom; the first group with a hit
wins. A keyword matches anywhere in the key ("домат" hits "сушени домати",
"мляко" hits "млякото"). Inside a group the longest keyword is tried first,
then declaration order, so the reported keyword is the most specific one.

Multi-word phrase groups come first so that e.g. "паста за зъби" lands in
personal care before the staples rule sees "паста".

Example:
- "кисело мляко верея 2 400г" → group dairy, keyword "кисело" → basic_foods (0.95)
"""
from typing import List, NamedTuple, Optional, Tuple

from packages.domain.categorization.schemas import CategoryId, RuleResult, category_name

RULE_CONFIDENCE = 0.95


class KeywordRule(NamedTuple):
    category: CategoryId
    group: str
    keywords: Tuple[str, ...]


KEYWORD_RULES: List[KeywordRule] = [
    # Phrases that would otherwise fall to a broader keyword
    KeywordRule(CategoryId.PERSONAL_CARE, "personal_care_phrases", (
        "паста за зъби", "четка за зъби", "тоалетна вода", "маска за коса", "боя за коса",
        "лак за коса", "спрей за коса", "олио за", "душ гел", "след слънце",
    )),
    KeywordRule(CategoryId.HOUSEHOLD, "household_phrases", (
        "тоалетна хартия", "кухненска хартия", "препарат за съдове", "препарат за миене",
        "торбички за смет", "за съдомиялна", "за прането", "за пране", "прах за пране",
        "течност за", "таблетки за", "капсули за",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "condiment_phrases", (
        "доматена паста", "домати консерва", "царевично брашно", "черен пипер", "черен дроб",
        "тиквени семки", "зелен фасул", "дафинов лист", "био мляко",
    )),
    KeywordRule(CategoryId.DRINKS, "drink_phrases", (
        "нес кафе", "айс ти", "горна баня", "кока кола",
    )),
    KeywordRule(CategoryId.SNACKS, "snack_phrases", (
        "солети", "медена пита", "поп корн", "захарно изделие",
    )),

    # Basic foods
    KeywordRule(CategoryId.BASIC_FOODS, "meat", (
        "месо", "пилешко", "пиле", "свинско", "свински", "говеждо", "говежд", "кебап",
        "кебапче", "шунка", "салам", "луканка", "суджук", "наденица", "бекон", "патешко",
        "агнешко", "пържола", "котлет", "карначе", "кюфте", "телешко", "дроб", "език",
        "сърца", "гърди", "бут", "филе", "кайма", "чевермета",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "fish", (
        "риба", "сьомга", "скумрия", "тон", "паламуд", "цаца", "пъстърва", "морски",
        "морска", "калмар", "октопод", "скарида", "миди", "раци", "хек", "сафрид",
        "сардина", "аншоа",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "dairy", (
        "мляко", "млеко", "сирене", "кашкавал", "йогурт", "кисело", "масло", "извара",
        "крема", "сметана", "айран", "айрян", "кефир", "катък", "моцарела", "пармезан",
        "фета", "рикота", "зрънест", "топено", "прясно", "краве", "овче", "кози",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "bread", (
        "хляб", "питка", "кифла", "франзела", "багета", "симит", "геврек", "козунак",
        "тост", "гевреци", "пита", "фокача", "чиабата", "погача",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "eggs", ("яйца", "яйце")),
    KeywordRule(CategoryId.BASIC_FOODS, "vegetables", (
        "домат", "доматен", "краставица", "краставиц", "моркови", "морков", "лук", "картоф",
        "чушка", "чушки", "пипер", "броколи", "карфиол", "зеле", "спанак", "маруля",
        "салата", "магданоз", "копър", "целина", "патладжан", "тиква", "тиквичка", "зелка",
        "чесън", "праз", "грах", "репа", "цвекло", "аспержи", "тиквички", "киселец",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "fruits", (
        "ябълка", "ябълк", "банан", "портокал", "грозде", "круша", "праскова", "кайсия",
        "череша", "вишна", "ягода", "малина", "боровинка", "диня", "пъпеш", "киви",
        "мандарина", "лимон", "грейпфрут", "нектарина", "сливи", "смокини", "авокадо",
        "манго", "папая", "ананас", "маракуя",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "staples", (
        "олио", "захар", "брашно", "ориз", "макарони", "паста", "спагети", "сол", "оцет",
        "зехтин", "боб", "леща", "нахут", "фасул", "грис", "булгур", "фиде", "сода",
        "бакпулвер", "мая", "ванилия", "канела", "карамфил", "кимион", "босилек", "риган",
        "чубрица", "джоджен", "дафинов", "мащерка",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "nuts", (
        "ядка", "ядки", "бадем", "орех", "фъстък", "лешник", "кашу", "слънчоглед", "сусам",
        "чия", "лен",
    )),
    KeywordRule(CategoryId.BASIC_FOODS, "condiments", (
        "кетчуп", "майонеза", "горчица", "лютеница", "айвар", "пинджур", "туршия",
        "зеленчукова", "бульон", "супа", "сос",
    )),

    KeywordRule(CategoryId.READY_MEALS, "ready_meals", (
        "пица", "пици", "сандвич", "хамбургер", "бургер", "кроасан", "понички", "донът",
        "тортила", "фахита", "буррито", "готово", "готова", "готови", "предварително",
        "препечен", "печено", "пържено", "мусака", "баница", "зелник", "тиквеник",
        "гьозлеме", "пататник", "палачинка", "крепи",
    )),
    KeywordRule(CategoryId.SNACKS, "snacks", (
        "чипс", "чипове", "бисквита", "бисквити", "вафла", "шоколад", "бонбон", "желе",
        "курабия", "кекс", "мъфин", "сладко", "сладки", "попкорн", "крекер", "стафиди",
        "сушен", "сушени", "снакс", "гризини", "соленки", "стръкчета", "царевица", "стик",
        "пуканки", "локум", "халва", "тахан", "мед", "близалка", "желирани", "торта",
        "сладкиш", "баклава", "еклер",
    )),
    KeywordRule(CategoryId.DRINKS, "drinks", (
        "вода", "сок", "кока", "кола", "фанта", "спрайт", "пепси", "напитка", "чай", "кафе",
        "бира", "вино", "ракия", "уиски", "водка", "джин", "коняк", "бренди", "енергийна",
        "енергиен", "лимонада", "нестий", "боза", "компот", "нектар", "витаминка",
        "алкохол", "алкохолна", "безалкохолна", "газирана", "негазирана", "минерална",
        "банкя", "девин", "вермут", "шампанско", "мастика", "какао",
    )),
    KeywordRule(CategoryId.HOUSEHOLD, "household", (
        "препарат", "миещ", "почистващ", "тоалетна", "хартия", "салфетки", "торбички",
        "торби", "фолио", "прах", "течност", "саше", "сапун", "почистване", "домакински",
        "кухненски", "кърпа", "кърпи", "гъба", "четка", "ароматизатор", "освежител",
        "омекотител", "белина", "дезинфектант", "инсектицид", "свещ", "клечка", "перилен",
        "гел", "кибрит", "запалка",
    )),
    KeywordRule(CategoryId.PERSONAL_CARE, "personal_care", (
        "шампоан", "балсам", "душ", "крем", "лосион", "дезодорант", "парфюм", "памперс",
        "пелени", "превръзки", "тампони", "бръснене", "козметика", "грим", "маска",
        "пилинг", "скраб", "серум", "хигиена", "хигиенни", "интимна", "измиващ", "мокри",
        "влажни", "антиперспирант", "слънцезащитен", "стайлинг", "мус", "одеколон",
    )),
]


class RuleMatcher:
    """
    Compiled keyword rules.

    Usage:
        hit = rule_matcher.match("паста за зъби colgate 75мл")
        print(hit.category_id, hit.rule_group)  # personal_care personal_care_phrases
    """

    def __init__(self, rules: List[KeywordRule] = KEYWORD_RULES):
        self._compiled: List[Tuple[KeywordRule, List[str]]] = [
            (rule, sorted(rule.keywords, key=len, reverse=True))
            for rule in rules
        ]

    def match(self, key: str) -> Optional[RuleResult]:
        """
        Apply rules to a lookup key.

        Args:
            key: Categorizer lookup key

        Returns:
            RuleResult with confidence 0.95, or None if no rule fires
        """
        if not key:
            return None

        for rule, keywords in self._compiled:
            for keyword in keywords:
                if keyword in key:
                    return RuleResult(
                        category_id=rule.category,
                        category_name=category_name(rule.category),
                        confidence=RULE_CONFIDENCE,
                        matched_keyword=keyword,
                        rule_group=rule.group,
                    )
        return None

    @property
    def rule_count(self) -> int:
        return len(self._compiled)


# Singleton instance
rule_matcher = RuleMatcher()
