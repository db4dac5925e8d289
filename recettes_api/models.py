# models.py
# Defines the SQLAlchemy ORM models for the database tables.

import itertools
import os
import time
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.types import TypeDecorator
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from recettes_api.db.session import Base

# ObjectId layout: 4-byte timestamp, 5-byte process id, 3-byte counter.
# Ids generated by one process therefore sort in creation order.
_PROCESS_ID = os.urandom(5).hex()
_counter = itertools.count(int.from_bytes(os.urandom(3), "big"))


def generate_object_id() -> str:
    return f"{int(time.time()):08x}{_PROCESS_ID}{next(_counter) & 0xFFFFFF:06x}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timestamps stored in UTC and always loaded back as aware datetimes,
    including on SQLite, which keeps no offset.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class User(Base):
    """
    User model for the 'users' table.
    """
    __tablename__ = "users"

    id = Column(String(24), primary_key=True, default=generate_object_id, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    def __str__(self):
        return f"{self.id}: {self.email}"


class Recipe(Base):
    """
    Recipe model for the 'recipes' table.

    Ingredients and steps are ordered lists of strings, stored one row per
    entry; `ingredients` and `steps` expose them as plain string lists.
    """
    __tablename__ = "recipes"
    __table_args__ = (
        CheckConstraint("popularity >= 0", name="ck_recipes_popularity_non_negative"),
    )

    id = Column(String(24), primary_key=True, default=generate_object_id, index=True)
    title = Column(String(100), nullable=False)
    author = Column(String, index=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, index=True)
    popularity = Column(Integer, default=0, nullable=False, index=True)

    ingredient_lines = relationship(
        "RecipeIngredient",
        order_by=lambda: RecipeIngredient.position,
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    step_lines = relationship(
        "RecipeStep",
        order_by=lambda: RecipeStep.position,
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    comments = relationship(
        "Comment",
        back_populates="recipe",
        order_by=lambda: (Comment.created_at, Comment.id),
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    ingredients = association_proxy(
        "ingredient_lines", "name", creator=lambda name: RecipeIngredient(name=name)
    )
    steps = association_proxy(
        "step_lines", "text", creator=lambda text: RecipeStep(text=text)
    )

    def __str__(self):
        return f"{self.id}: {self.title}, by {self.author}"


class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"

    id = Column(Integer, primary_key=True)
    recipe_id = Column(String(24), ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=False)
    position = Column(Integer, nullable=False)
    name = Column(String, nullable=False, index=True)


class RecipeStep(Base):
    __tablename__ = "recipe_steps"

    id = Column(Integer, primary_key=True)
    recipe_id = Column(String(24), ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=False)
    position = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)


class Comment(Base):
    """
    A comment left on a recipe. Owned by the recipe: it is removed with it.
    """
    __tablename__ = "comments"

    id = Column(String(24), primary_key=True, default=generate_object_id, index=True)
    recipe_id = Column(String(24), ForeignKey("recipes.id", ondelete="CASCADE"), index=True, nullable=False)
    author = Column(String, nullable=False)
    body = Column(String(500), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    recipe = relationship("Recipe", back_populates="comments")
