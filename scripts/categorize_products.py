#!/usr/bin/env python3
"""
Run the categorization waterfall and validator on a sample receipt
(standalone, no database reads or writes)

Usage:
    python scripts/categorize_products.py
    python scripts/categorize_products.py --store "Kaufland Младост" "Айрян Верея 500мл" "Kinder Bueno"
"""
import argparse
import asyncio
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from packages.common.logging_setup import configure_logging
from packages.common.schemas.receipt import ProcessedItem
from packages.domain.categorization import BatchItem, categorization_service
from packages.domain.normalization import normalize
from packages.domain.quality import UserHistory, create_validation_summary, quality_validator

SAMPLE_ITEMS = [
    ("Прясно мляко Верея 1л 3.6%", Decimal("2.49")),
    ("Хляб Добруджа 500г", Decimal("1.59")),
    ("Кисело мляко Верея 2% 400г", Decimal("1.29")),
    ("Душ гел Nivea 250мл", Decimal("5.99")),
    ("PIRATO Tortilla Chips", Decimal("1.99")),
    ("Kinder Bueno", Decimal("1.89")),
]


async def main(store_name: str, names):
    configure_logging(log_level="WARNING")

    items = [(name, Decimal("1.00")) for name in names] if names else SAMPLE_ITEMS

    print('=' * 80)
    print(f'CATEGORIZATION: {store_name}')
    print('=' * 80)

    results = await categorization_service.categorize_batch(
        [BatchItem(name=name) for name, _ in items],
        store_name=store_name,
    )

    processed = []
    for (name, price), row in zip(items, results):
        product = normalize(name)
        result = row.result
        print(f'{name}')
        print(f'  normalized: {product.normalized_name}')
        print(f'  category:   {result.category_name} ({result.category_id.value})')
        print(f'  method:     {result.method.value}  confidence={result.confidence:.2f}')
        print()
        processed.append(ProcessedItem(
            name=name,
            price=price,
            category=result.category_id.value,
            confidence=result.confidence,
            method=result.method.value,
            normalized_name=product.normalized_name,
        ))

    declared_total = sum((item.line_total for item in processed), Decimal("0"))
    validation = quality_validator.validate(
        "sample", processed, declared_total, store_name, UserHistory.empty()
    )
    print('=' * 80)
    print(f'Total: {declared_total} лв')
    print(create_validation_summary(validation))
    print(f'Stats: {categorization_service.get_stats().model_dump(exclude={"categories"})}')


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Categorize product names")
    parser.add_argument("names", nargs="*", help="Product names (defaults to a sample receipt)")
    parser.add_argument("--store", default="LIDL", help="Merchant name")
    args = parser.parse_args()
    asyncio.run(main(args.store, args.names))
