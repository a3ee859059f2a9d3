"""
Allergen normalization.

Providers report allergens as taxonomy tags ("en:peanuts"), hierarchy
arrays, free-text comma lists, or traces tags. Everything is merged,
stripped of prefixes, deduplicated case-insensitively and mapped to a
canonical display name.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from ecoscan.domain.product.models import AllergenLookup

CANONICAL_ALLERGENS: dict[str, str] = {
    "peanut": "Peanut",
    "peanuts": "Peanut",
    "milk": "Milk",
    "dairy": "Milk",
    "lactose": "Milk",
    "gluten": "Gluten",
    "wheat": "Wheat",
    "soy": "Soy",
    "soya": "Soy",
    "soybeans": "Soy",
    "fish": "Fish",
    "egg": "Eggs",
    "eggs": "Eggs",
    "nuts": "Tree Nuts",
    "tree-nuts": "Tree Nuts",
    "tree nuts": "Tree Nuts",
    "hazelnut": "Tree Nuts",
    "hazelnuts": "Tree Nuts",
    "almonds": "Tree Nuts",
    "sesame": "Sesame",
    "sesame-seeds": "Sesame",
    "sesame seeds": "Sesame",
    "crustaceans": "Crustaceans",
    "shellfish": "Crustaceans",
    "molluscs": "Molluscs",
    "mustard": "Mustard",
    "celery": "Celery",
    "lupin": "Lupin",
    "sulphur-dioxide-and-sulphites": "Sulphites",
    "sulphites": "Sulphites",
}

_SPLIT_PATTERN = re.compile(r"[,;]")


def _strip_prefix(tag: str) -> str:
    """Drop a language/taxonomy prefix such as "en:"."""
    return tag.split(":")[-1].strip()


def canonicalize(tag: str) -> Optional[str]:
    """Map one raw allergen token to its display name.

    Unknown tokens pass through title-cased.

    Example:
        >>> canonicalize("en:peanuts")
        'Peanut'
        >>> canonicalize("kiwi-fruit")
        'Kiwi Fruit'
    """
    token = _strip_prefix(tag).lower()
    if not token:
        return None
    if token in CANONICAL_ALLERGENS:
        return CANONICAL_ALLERGENS[token]
    return token.replace("-", " ").replace("_", " ").title()


def _raw_tokens(lookup: AllergenLookup) -> Iterable[str]:
    for tag in (*lookup.tags, *lookup.hierarchy, *lookup.traces):
        if isinstance(tag, str):
            yield tag
    if lookup.free_text:
        yield from _SPLIT_PATTERN.split(lookup.free_text)


def normalize_allergens(lookup: Optional[AllergenLookup]) -> list[str]:
    """Merge every allergen variant into a deduplicated display list.

    Args:
        lookup: Provider payload, None when the provider had nothing

    Returns:
        Canonical allergen names in first-seen order

    Example:
        >>> lookup = AllergenLookup(
        ...     tags=["en:milk", "en:peanuts"],
        ...     free_text="Milk, Gluten",
        ... )
        >>> normalize_allergens(lookup)
        ['Milk', 'Peanut', 'Gluten']
    """
    if lookup is None:
        return []

    result: list[str] = []
    seen: set[str] = set()
    for raw in _raw_tokens(lookup):
        name = canonicalize(raw)
        if name is None or name.lower() in seen:
            continue
        seen.add(name.lower())
        result.append(name)
    return result


def match_user_allergens(
    preferences: Iterable[str],
    allergens: Iterable[str],
    ingredients: Optional[str] = None,
) -> list[str]:
    """Find user-selected allergens present in a product.

    Matching is case-insensitive substring containment against each
    normalized allergen and the ingredients text.

    Args:
        preferences: Allergens the user wants to avoid
        allergens: Normalized product allergens
        ingredients: Free-text ingredients, if known

    Returns:
        Matching preferences, in preference order

    Example:
        >>> match_user_allergens(["milk", "Fish"], ["Milk"], "sugar, palm oil")
        ['milk']
    """
    haystacks = [a.lower() for a in allergens]
    if ingredients:
        haystacks.append(ingredients.lower())

    matches: list[str] = []
    for preference in preferences:
        needle = preference.strip().lower()
        if needle and any(needle in haystack for haystack in haystacks):
            matches.append(preference)
    return matches
