"""Lookup tables shared by the recipe parsing modules."""

from typing import Dict, FrozenSet, List

FRACTION_MAP: Dict[str, str] = {
    "½": "1/2",
    "⅓": "1/3",
    "⅔": "2/3",
    "¼": "1/4",
    "¾": "3/4",
    "⅕": "1/5",
    "⅖": "2/5",
    "⅗": "3/5",
    "⅘": "4/5",
    "⅙": "1/6",
    "⅚": "5/6",
    "⅛": "1/8",
    "⅜": "3/8",
    "⅝": "5/8",
    "⅞": "7/8",
}

FRACTION_CHARS = "".join(FRACTION_MAP.keys())

# Keys are lowercase with periods removed.
UNIT_ALIASES: Dict[str, str] = {
    "t": "tsp",
    "ts": "tsp",
    "tsp": "tsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "tbs": "tbsp",
    "tbsp": "tbsp",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "g": "g",
    "gram": "g",
    "grams": "g",
    "kg": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "ml": "ml",
    "milliliter": "ml",
    "milliliters": "ml",
    "l": "l",
    "liter": "l",
    "liters": "l",
    "cup": "cup",
    "cups": "cup",
    "oz": "oz",
    "ounce": "oz",
    "ounces": "oz",
    "lb": "lb",
    "lbs": "lb",
    "pound": "lb",
    "pounds": "lb",
    "clove": "clove",
    "cloves": "clove",
    "can": "can",
    "cans": "can",
    "pinch": "pinch",
    "pinches": "pinch",
    "bunch": "bunch",
    "bunches": "bunch",
    "slice": "slice",
    "slices": "slice",
    "sprig": "sprig",
    "sprigs": "sprig",
    "strip": "strip",
    "strips": "strip",
    "stalk": "stalk",
    "stalks": "stalk",
    "sheet": "sheet",
    "sheets": "sheet",
}

KNOWN_UNITS: FrozenSet[str] = frozenset(UNIT_ALIASES.values())

METRIC_UNITS: FrozenSet[str] = frozenset({"g", "kg", "ml", "l"})
US_UNITS: FrozenSet[str] = frozenset({"cup", "oz", "lb"})
NEUTRAL_UNITS: FrozenSet[str] = frozenset(
    {"tsp", "tbsp", "pinch", "bunch", "slice", "clove", "can", "sprig", "strip", "stalk", "sheet"}
)

INGREDIENT_SELECTORS: List[str] = [
    '[itemprop="recipeIngredient"]',
    ".ingredients li",
    ".ingredient-list li",
    ".ingredient-item",
    ".recipe-ingredients li",
    ".ingredients p",
]

STEP_SELECTORS: List[str] = [
    '[itemprop="recipeInstructions"] li',
    '[itemprop="recipeInstructions"] p',
    ".instructions li",
    ".instructions p",
    ".method li",
    ".method p",
    ".directions li",
    ".directions p",
    ".recipe-steps li",
    ".recipe-steps p",
]
