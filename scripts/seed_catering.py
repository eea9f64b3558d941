#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from insomnia_fuel.core.config import DATABASE_URL  # noqa: E402
from insomnia_fuel.core.database import Database  # noqa: E402
from insomnia_fuel.services.menu import upsert_menu_item  # noqa: E402

BREAKFAST = "Breakfast or Afternoon Platters to Share"
LUNCH = "Lunch Platters to Share"
HOT_FOOD = "Gourmet Hot Food Platter"
SERVES = "Serve 12-14 people"

CATERING_ITEMS = [
    {"section": BREAKFAST, "name": "Fresh Fruit Platter", "description": "Seasonal Fruit to Share", "price": 69},
    {
        "section": BREAKFAST,
        "name": "Assorted Savoury Platter",
        "description": "Selection of Quiches, Sausage or Spinach Rolls, Pies",
        "price": 69,
    },
    {
        "section": BREAKFAST,
        "name": "Assorted Sweet Platter",
        "description": "Selection of assorted muffins, friands, danishes, sweet slices, banana breads",
        "price": 69,
    },
    {"section": BREAKFAST, "name": "Bacon & Egg Slider Platter", "price": 69},
    {"section": BREAKFAST, "name": "Savoury Croissant Platter", "price": 79},
    {"section": BREAKFAST, "name": "Sweet Croissant Platter", "price": 79},
    {"section": LUNCH, "name": "Assorted Gourment Wraps Platter (Large)", "description": "Mixed wraps from our Wraps Menu", "price": 99},
    {"section": LUNCH, "name": "Assorted Gourment Wraps Platter (Med)", "description": "Mixed wraps from our Wraps Menu", "price": 79},
    {
        "section": LUNCH,
        "name": "Assorted Point Sandwiches Platter (Med)",
        "description": "Mixed sandwiches from our Sandwich Menu",
        "price": 69,
    },
    {
        "section": LUNCH,
        "name": "Assorted Point Sandwiches Platter (Large)",
        "description": "Mixed sandwiches from our Sandwich Menu",
        "price": 89,
    },
    {"section": LUNCH, "name": "BBQ Grilled Platter large", "price": 119},
    {"section": LUNCH, "name": "Cheese Platter (with Crackers and Dry fruits)", "price": 89},
    {"section": LUNCH, "name": "Gourmet Mezze Platter (with Dips)", "price": 89},
    {"section": LUNCH, "name": "Lunch Slider Platter", "price": 79},
    {"section": LUNCH, "name": "Salad Trays", "price": 79},
    {"section": LUNCH, "name": "Schnitzel Bites Platter", "price": 69},
    {"section": HOT_FOOD, "name": "Spaghetti Bolognese Large (10-12 People)", "description": SERVES, "price": 99},
    {"section": HOT_FOOD, "name": "Penne Pesto with Chicken Large (10-12 People)", "description": SERVES, "price": 99},
    {"section": HOT_FOOD, "name": "Tortellini Boscaiola Large (10-12 People)", "description": SERVES, "price": 99},
    {"section": HOT_FOOD, "name": "Chicken & Mushroom Risotto Large (10-12 People)", "description": SERVES, "price": 99},
    {"section": HOT_FOOD, "name": "Chicken and Veg Fried Rice Large (10-12 People)", "description": SERVES, "price": 99},
    {
        "section": HOT_FOOD,
        "name": "Chicken, Chorizo & Seafood Paella Large (10-12 People)",
        "description": SERVES,
        "price": 119,
    },
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the catering section of the menu.")
    parser.add_argument("--database-url", default=DATABASE_URL, help="Overrides DATABASE_URL")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    database = Database(args.database_url)
    if database.is_sqlite:
        database.create_all()

    inserted = updated = 0
    db = database.session()
    try:
        for item in CATERING_ITEMS:
            created = upsert_menu_item(
                db,
                category="catering",
                section=item["section"],
                name=item["name"],
                price=item["price"],
                description=item.get("description", ""),
            )
            if created:
                inserted += 1
            else:
                updated += 1
    except Exception as exc:
        db.rollback()
        print(f"Catering seed failed: {exc}")
        return 1
    finally:
        db.close()
        database.dispose()

    print(f"Catering seed complete: inserted {inserted}, updated {updated}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
