"""
Impact metrics for donated food.

Every figure is a per-category factor multiplied by the donation's weight in
kilograms, so the same ``(food_type, quantity, unit)`` always yields the same
numbers.
"""
import math
from collections import namedtuple

# Kilograms per unit
UNIT_TO_KG = {
    'kg': 1,
    'items': 0.3,
    'portions': 0.3,
    'servings': 0.3,
    'liters': 1,
    'packages': 0.5,
}

# kg of CO2 avoided per kg of food
CO2_PER_KG = {
    1: 2.2,   # Dairy
    2: 0.8,   # Bakery
    3: 0.5,   # Fruits
    4: 0.4,   # Vegetables
    5: 1.8,   # Prepared Meals
    6: 1.1,   # Canned Goods
    7: 0.7,   # Dry Goods
    8: 6.5,   # Meat & Poultry
    9: 5.4,   # Seafood
    10: 2.2,  # Frozen Foods
}
DEFAULT_CO2_PER_KG = 1.5

MEALS_PER_KG = {
    1: 1.5,
    2: 2.0,
    3: 1.5,
    4: 1.8,
    5: 3.5,
    6: 2.5,
    7: 3.0,
    8: 2.5,
    9: 2.0,
    10: 2.2,
}
DEFAULT_MEALS_PER_KG = 2.0

# Currency (MYR) per kg
VALUE_PER_KG = {
    1: 25.50,
    2: 18.00,
    3: 30.00,
    4: 25.00,
    5: 40.00,
    6: 15.00,
    7: 12.00,
    8: 55.00,
    9: 65.00,
    10: 35.00,
}
DEFAULT_VALUE_PER_KG = 20.00

Impact = namedtuple('Impact', ['food_weight', 'co2_saved', 'meals_provided', 'estimated_value'])


def _category_id(food_type):
    """Category ids arrive as ints from the store and as strings from forms."""
    try:
        return int(food_type)
    except (TypeError, ValueError):
        return None


def _factor(table, food_type, default):
    return table.get(_category_id(food_type), default)


def to_kilograms(quantity, unit):
    if not quantity:
        return 0
    return quantity * UNIT_TO_KG.get(unit, 1)


def co2_saved(food_type, quantity, unit):
    return _factor(CO2_PER_KG, food_type, DEFAULT_CO2_PER_KG) * to_kilograms(quantity, unit)


def meals_provided(food_type, quantity, unit):
    meals = _factor(MEALS_PER_KG, food_type, DEFAULT_MEALS_PER_KG) * to_kilograms(quantity, unit)
    # half-up, so 2.5 meals counts as 3
    return int(math.floor(meals + 0.5))


def estimated_value(food_type, quantity, unit):
    return _factor(VALUE_PER_KG, food_type, DEFAULT_VALUE_PER_KG) * to_kilograms(quantity, unit)


def compute_impact(food_type, quantity, unit):
    """All four figures, rounded the way they are stored."""
    return Impact(
        food_weight=round(to_kilograms(quantity, unit), 2),
        co2_saved=round(co2_saved(food_type, quantity, unit), 2),
        meals_provided=meals_provided(food_type, quantity, unit),
        estimated_value=round(estimated_value(food_type, quantity, unit), 2),
    )
