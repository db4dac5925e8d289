# crud.py
# Contains the functions for Create, Read, Update, Delete (CRUD) operations.
# Lookups return None when nothing matches; the routers decide what that means.

import logging
from typing import Optional

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recettes_api import models
from recettes_api import schemas
from recettes_api.core.errors import ConflictError
from recettes_api.core.security import get_password_hash, verify_password
from recettes_api.filters import RecipeFilters, RecipePage, build_recipe_query

# Get a logger instance
logger = logging.getLogger(__name__)


# --- User CRUD Functions ---
def get_user(db: Session, user_id: str):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def get_users(db: Session):
    return db.query(models.User).order_by(models.User.created_at, models.User.id).all()


def create_user(db: Session, user: schemas.UserCreate):
    db_user = models.User(
        name=user.name,
        email=user.email,
        hashed_password=get_password_hash(user.password),
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        db.rollback()
        logger.warning(f"Duplicate email on insert: {user.email}")
        raise ConflictError(details={"email": user.email})
    db.refresh(db_user)
    return db_user


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    """
    Returns the user when the credentials match, None otherwise. Callers get
    no hint of which part was wrong.
    """
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


# --- Recipe CRUD Functions ---
def get_recipe(db: Session, recipe_id: str):
    logger.debug(f"Retrieving recipe with id {recipe_id}")
    return db.query(models.Recipe).filter(models.Recipe.id == recipe_id).first()


def get_recipes(db: Session, filters: RecipeFilters) -> RecipePage:
    """
    Retrieve one page of recipes matching the filters, plus the total match count.
    """
    logger.debug(f"Retrieving recipes with {filters}")
    page_query, count_query = build_recipe_query(db.query(models.Recipe), filters)
    total = count_query.count()
    # Offsets past the last match can exceed what the store accepts
    items = page_query.all() if filters.offset < total else []
    return RecipePage(items, total, filters.page, filters.limit)


def create_recipe(db: Session, recipe: schemas.RecipeCreate):
    logger.debug(f"Creating recipe: {recipe}")
    db_recipe = models.Recipe(
        title=recipe.title,
        author=recipe.author,
        popularity=0,
    )
    db_recipe.ingredients = recipe.ingredients
    db_recipe.steps = recipe.steps
    db.add(db_recipe)
    db.commit()
    db.refresh(db_recipe)
    return db_recipe


def update_recipe(db: Session, db_recipe: models.Recipe, recipe_update: schemas.RecipeUpdate):
    """
    Apply a partial update: fields absent from the request keep their value.
    """
    update_data = recipe_update.model_dump(exclude_unset=True)
    logger.debug(f"Updating recipe {db_recipe.id} with: {update_data}")
    for key, value in update_data.items():
        setattr(db_recipe, key, value)
    db.commit()
    db.refresh(db_recipe)
    return db_recipe


def delete_recipe(db: Session, db_recipe: models.Recipe):
    """
    Delete a recipe. The cascade on the model removes its ingredient lines,
    steps and comments in the same transaction.
    """
    logger.debug(f"Deleting recipe {db_recipe.id}")
    db.delete(db_recipe)
    db.commit()


def like_recipe(db: Session, recipe_id: str) -> Optional[int]:
    """
    Increment popularity with a single UPDATE ... RETURNING, so concurrent
    likes are neither lost nor reported twice. Returns the new value, or None
    if the recipe does not exist.
    """
    stmt = (
        update(models.Recipe)
        .where(models.Recipe.id == recipe_id)
        .values(popularity=models.Recipe.popularity + 1)
        .returning(models.Recipe.popularity)
        .execution_options(synchronize_session=False)
    )
    popularity = db.execute(stmt).scalar_one_or_none()
    db.commit()
    return popularity


# --- Comment CRUD Functions ---
def get_comment(db_recipe: models.Recipe, comment_id: str) -> Optional[models.Comment]:
    return next((c for c in db_recipe.comments if c.id == comment_id), None)


def add_comment(db: Session, db_recipe: models.Recipe, comment: schemas.CommentCreate):
    """
    Append a comment and bump popularity by one, committed together.
    """
    db_recipe.comments.append(models.Comment(author=comment.author, body=comment.body))
    db_recipe.popularity = models.Recipe.popularity + 1
    db.commit()
    db.refresh(db_recipe)
    return db_recipe


def remove_comment(db: Session, db_recipe: models.Recipe, db_comment: models.Comment):
    """
    Remove a comment and lower popularity by one, never below zero.
    """
    db_recipe.comments.remove(db_comment)
    db_recipe.popularity = case(
        (models.Recipe.popularity > 0, models.Recipe.popularity - 1),
        else_=0,
    )
    db.commit()
    db.refresh(db_recipe)
    return db_recipe
