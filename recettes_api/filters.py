# filters.py
# Turns the optional filter / sort / pagination parameters of GET /recettes
# into an ORM query and a count.

import logging
import math
from typing import List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from recettes_api import models

logger = logging.getLogger(__name__)

DEFAULT_SORT = "-date"

SORT_FIELDS = {
    'date': models.Recipe.created_at,
    'popularite': models.Recipe.popularity,
    'popularity': models.Recipe.popularity,
}

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


class RecipeFilters:
    """
    Filter, sort and pagination parameters for a recipe listing.
    Absent filters impose no constraint; supplied ones are ANDed.
    """

    def __init__(
        self,
        ingredient: Optional[str] = None,
        author: Optional[str] = None,
        sort: Optional[str] = None,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
    ):
        self.ingredient = ingredient
        self.author = author
        self.sort = sort
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def __repr__(self):
        return (
            f"RecipeFilters(ingredient={self.ingredient!r}, author={self.author!r}, "
            f"sort={self.sort!r}, page={self.page}, limit={self.limit})"
        )


class RecipePage:
    def __init__(self, items: List[models.Recipe], total: int, page: int, limit: int):
        self.items = items
        self.total = total
        self.page = page
        self.limit = limit

    @property
    def pages(self) -> int:
        return page_count(self.total, self.limit)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit)


def contains_pattern(value: str) -> str:
    """
    Case-insensitive substring pattern for ILIKE; wildcards in the user's
    input match literally.
    """
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def apply_filters(query: Query, filters: RecipeFilters) -> Query:
    if filters.ingredient:
        # Matches when any ingredient line contains the text
        query = query.filter(models.Recipe.ingredient_lines.any(
            models.RecipeIngredient.name.ilike(contains_pattern(filters.ingredient), escape="\\")
        ))
    if filters.author:
        query = query.filter(models.Recipe.author.ilike(contains_pattern(filters.author), escape="\\"))
    return query


def resolve_sort(sort_param: Optional[str]) -> str:
    """
    Unknown sort values fall back to the default order instead of failing.
    """
    field = sort_param[1:] if sort_param and sort_param.startswith('-') else sort_param
    if field in SORT_FIELDS:
        return sort_param
    if sort_param:
        logger.debug(f"Unknown sort '{sort_param}', using {DEFAULT_SORT}")
    return DEFAULT_SORT


def apply_sorting(query: Query, sort_param: Optional[str]) -> Query:
    field = resolve_sort(sort_param)
    direction = asc
    if field.startswith('-'):
        direction = desc
        field = field[1:]
    # Id as tie breaker keeps pages stable
    return query.order_by(direction(SORT_FIELDS[field]), direction(models.Recipe.id))


def apply_pagination(query: Query, filters: RecipeFilters) -> Query:
    return query.offset(filters.offset).limit(filters.limit)


def build_recipe_query(query: Query, filters: RecipeFilters) -> tuple[Query, Query]:
    """
    Returns (page query, count query) for the given base query.
    """
    filtered = apply_filters(query, filters)
    page_query = apply_pagination(apply_sorting(filtered, filters.sort), filters)
    return page_query, filtered
