"""Filtering, sorting and pagination over the in-memory character list.

Pure functions: they never mutate their inputs and never touch the network, so the
browser session can recompute the filtered-sorted view on every read.
"""

import locale
import math
from typing import List, Sequence, Tuple

from .schemas import Character, FilterCriteria, SortOrder


def _contains(haystack: str, needle: str) -> bool:
    return needle.casefold() in (haystack or "").casefold()


def matches(ch: Character, criteria: FilterCriteria) -> bool:
    """True if ``ch`` satisfies every non-empty criterion.

    name/species/type are case-insensitive substring tests; status and gender must
    match exactly.
    """
    if criteria.status and ch.status != criteria.status:
        return False
    if criteria.gender and ch.gender != criteria.gender:
        return False
    if criteria.species and not _contains(ch.species, criteria.species):
        return False
    if criteria.type and not _contains(ch.type, criteria.type):
        return False
    if criteria.name and not _contains(ch.name, criteria.name):
        return False
    return True


def filter_characters(
    characters: Sequence[Character], criteria: FilterCriteria
) -> List[Character]:
    return [ch for ch in characters if matches(ch, criteria)]


def _name_key(ch: Character) -> Tuple[str, str, int]:
    # Duplicate names exist upstream (several "Rick Sanchez"); id keeps the order total
    return (locale.strxfrm(ch.name.casefold()), ch.name, ch.id)


def sort_characters(
    characters: Sequence[Character], order: SortOrder
) -> List[Character]:
    """Return a new list ordered by name; ``SortOrder.none`` keeps source order."""
    if order == SortOrder.asc:
        return sorted(characters, key=_name_key)
    if order == SortOrder.desc:
        return sorted(characters, key=_name_key, reverse=True)
    return list(characters)


def total_pages(count: int, page_size: int) -> int:
    """ceil(count / page_size); 0 for an empty list."""
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")
    return math.ceil(count / page_size)


def last_page_index(count: int, page_size: int) -> int:
    """Index of the last navigable page; an empty list still has page 0."""
    return max(total_pages(count, page_size), 1) - 1


def paginate(items: Sequence[Character], page: int, page_size: int) -> List[Character]:
    """Contiguous window ``[page * page_size, page * page_size + page_size)``."""
    start = page * page_size
    return list(items[start : start + page_size])


def filtered_sorted(
    characters: Sequence[Character], criteria: FilterCriteria, order: SortOrder
) -> List[Character]:
    return sort_characters(filter_characters(characters, criteria), order)
