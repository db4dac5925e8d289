# api/recipes.py
# Handles all API endpoints related to recipes and their comments.

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

# Import local modules
from recettes_api import crud
from recettes_api import models
from recettes_api import schemas
from recettes_api.api.auth import get_current_user, get_optional_user
from recettes_api.core.errors import InvalidIdentifierError, NotFoundError
from recettes_api.db.session import get_db
from recettes_api.filters import DEFAULT_LIMIT, DEFAULT_PAGE, RecipeFilters
from recettes_api.validators import AuthorFilter, IngredientFilter, Limit, ObjectId, Page, is_object_id

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)

RECIPE_NOT_FOUND = "Recette non trouvée"
COMMENT_NOT_FOUND = "Commentaire non trouvé"

RecipeId = Annotated[ObjectId, Path()]


def get_recipe_or_404(db: Session, recipe_id: str) -> models.Recipe:
    db_recipe = crud.get_recipe(db, recipe_id=recipe_id)
    if db_recipe is None:
        logger.warning(f"Recipe with ID {recipe_id} not found.")
        raise NotFoundError(RECIPE_NOT_FOUND)
    return db_recipe


def recipe_filters(
    ingredient: Annotated[IngredientFilter, Query()] = None,
    author: Annotated[AuthorFilter, Query(alias="auteur")] = None,
    sort: Annotated[Optional[str], Query(alias="tri")] = None,
    page: Annotated[Page, Query()] = DEFAULT_PAGE,
    limit: Annotated[Limit, Query(alias="limite")] = DEFAULT_LIMIT,
) -> RecipeFilters:
    return RecipeFilters(ingredient=ingredient, author=author, sort=sort, page=page, limit=limit)


@router.post("", response_model=schemas.Envelope[schemas.Recipe], status_code=status.HTTP_201_CREATED)
def create_recipe(
        recipe: schemas.RecipeCreate,
        db: Session = Depends(get_db),
        current_user: schemas.TokenData = Depends(get_current_user),
):
    """
    Create a new recipe.
    """
    logger.debug(f"User {current_user.email} is creating a new recipe.")
    db_recipe = crud.create_recipe(db=db, recipe=recipe)
    return {"message": "Recette créée avec succès", "data": db_recipe}


@router.get("", response_model=schemas.RecipePage)
def read_recipes(
        filters: RecipeFilters = Depends(recipe_filters),
        db: Session = Depends(get_db),
):
    """
    List recipes, filtered by ingredient and/or author, sorted and paginated.
    """
    page = crud.get_recipes(db, filters)
    return {
        "data": page.items,
        "pagination": {
            "page": page.page,
            "limite": page.limit,
            "total": page.total,
            "pages": page.pages,
        },
    }


@router.get("/{recipe_id}", response_model=schemas.Envelope[schemas.Recipe])
def read_recipe(
        recipe_id: RecipeId,
        db: Session = Depends(get_db),
):
    """
    Retrieve a single recipe by its ID.
    """
    logger.debug(f"Fetching recipe with ID: {recipe_id}")
    return {"data": get_recipe_or_404(db, recipe_id)}


@router.put("/{recipe_id}", response_model=schemas.Envelope[schemas.Recipe])
def update_recipe(
        recipe_id: RecipeId,
        recipe: schemas.RecipeUpdate,
        db: Session = Depends(get_db),
        current_user: schemas.TokenData = Depends(get_current_user),
):
    """
    Update some fields of a recipe.
    """
    logger.debug(f"User {current_user.email} is updating recipe with ID: {recipe_id}")
    db_recipe = get_recipe_or_404(db, recipe_id)
    db_recipe = crud.update_recipe(db=db, db_recipe=db_recipe, recipe_update=recipe)
    return {"message": "Recette modifiée avec succès", "data": db_recipe}


@router.delete("/{recipe_id}", response_model=schemas.Message)
def delete_recipe(
        recipe_id: RecipeId,
        db: Session = Depends(get_db),
        current_user: schemas.TokenData = Depends(get_current_user),
):
    """
    Delete a recipe together with its comments.
    """
    logger.debug(f"User {current_user.email} is deleting recipe with ID: {recipe_id}")
    db_recipe = get_recipe_or_404(db, recipe_id)
    crud.delete_recipe(db=db, db_recipe=db_recipe)
    return {"message": "Recette supprimée avec succès"}


@router.post("/{recipe_id}/like", response_model=schemas.Envelope[schemas.Popularity])
def like_recipe(
        recipe_id: RecipeId,
        db: Session = Depends(get_db),
        current_user: Optional[schemas.TokenData] = Depends(get_optional_user),
):
    """
    Like a recipe: popularity goes up by one.
    """
    popularity = crud.like_recipe(db, recipe_id)
    if popularity is None:
        logger.warning(f"Recipe with ID {recipe_id} not found for like.")
        raise NotFoundError(RECIPE_NOT_FOUND)
    return {"message": "Recette aimée", "data": {"popularite": popularity}}


# --- Comment Endpoints ---

@router.post(
    "/{recipe_id}/commentaires",
    response_model=schemas.Envelope[schemas.Recipe],
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    recipe_id: RecipeId,
    comment: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: Optional[schemas.TokenData] = Depends(get_optional_user),
):
    """
    Add a comment to a recipe. Each comment adds one to its popularity.
    """
    db_recipe = get_recipe_or_404(db, recipe_id)
    db_recipe = crud.add_comment(db=db, db_recipe=db_recipe, comment=comment)
    return {"message": "Commentaire ajouté avec succès", "data": db_recipe}


@router.get("/{recipe_id}/commentaires", response_model=schemas.Envelope[schemas.CommentList])
def read_comments(
    recipe_id: RecipeId,
    db: Session = Depends(get_db),
):
    """
    Get the comments of a recipe, with the recipe title.
    """
    db_recipe = get_recipe_or_404(db, recipe_id)
    comments = list(db_recipe.comments)
    return {
        "data": {
            "titre": db_recipe.title,
            "commentaires": comments,
            "total": len(comments),
        }
    }


@router.delete("/{recipe_id}/commentaires/{comment_id}", response_model=schemas.Message)
def delete_comment(
    recipe_id: RecipeId,
    comment_id: str,
    db: Session = Depends(get_db),
    current_user: schemas.TokenData = Depends(get_current_user),
):
    """
    Delete a comment. Popularity goes down by one, never below zero.
    """
    if not is_object_id(comment_id):
        raise InvalidIdentifierError("commentaireId", comment_id)

    db_recipe = get_recipe_or_404(db, recipe_id)
    db_comment = crud.get_comment(db_recipe, comment_id.lower())
    if db_comment is None:
        logger.warning(f"Comment {comment_id} not found on recipe {recipe_id}.")
        raise NotFoundError(COMMENT_NOT_FOUND)

    crud.remove_comment(db=db, db_recipe=db_recipe, db_comment=db_comment)
    return {"message": "Commentaire supprimé avec succès"}
