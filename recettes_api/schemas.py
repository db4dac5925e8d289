# schemas.py
# Defines the Pydantic models (schemas) for data validation and serialization.
# Python attribute names are English; the JSON names (aliases) are the
# French ones used by the API.

from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from recettes_api.validators import (
    CommentAuthor,
    CommentBody,
    Email,
    Ingredients,
    NewPassword,
    Password,
    RecipeAuthor,
    RecipeTitle,
    Steps,
    UserName,
)

T = TypeVar("T")


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# --- Comment Schemas ---

class CommentCreate(ApiModel):
    author: CommentAuthor = Field(alias="auteur")
    body: CommentBody = Field(alias="contenu")


class Comment(ApiModel):
    id: str
    author: str = Field(alias="auteur")
    body: str = Field(alias="contenu")
    created_at: Optional[datetime] = Field(None, alias="date")

    @model_validator(mode='before')
    @classmethod
    def transform_from_orm(cls, data: Any) -> Any:
        if hasattr(data, "recipe_id"):  # Is an ORM object
            return {
                "id": data.id,
                "auteur": data.author,
                "contenu": data.body,
                "date": data.created_at,
            }
        return data


class CommentList(ApiModel):
    title: str = Field(alias="titre")
    comments: List[Comment] = Field(alias="commentaires")
    total: int


# --- Recipe Schemas ---

class RecipeCreate(ApiModel):
    title: RecipeTitle = Field(alias="titre")
    ingredients: Ingredients
    steps: Steps = Field(alias="etapes")
    author: RecipeAuthor = Field(alias="auteur")


class RecipeUpdate(ApiModel):
    """
    Partial update: only the fields present in the request are applied.
    Defaults are not validated, so an explicit null is still rejected.
    """
    title: RecipeTitle = Field(None, alias="titre")
    ingredients: Ingredients = None
    steps: Steps = Field(None, alias="etapes")
    author: RecipeAuthor = Field(None, alias="auteur")


class Recipe(ApiModel):
    id: str
    title: str = Field(alias="titre")
    ingredients: List[str]
    steps: List[str] = Field(alias="etapes")
    author: str = Field(alias="auteur")
    created_at: Optional[datetime] = Field(None, alias="date")
    popularity: int = Field(0, alias="popularite")
    comments: List[Comment] = Field(default_factory=list, alias="commentaires")

    @model_validator(mode='before')
    @classmethod
    def transform_from_orm(cls, data: Any) -> Any:
        if hasattr(data, "ingredient_lines"):  # Is an ORM object
            return {
                "id": data.id,
                "titre": data.title,
                "ingredients": list(data.ingredients),
                "etapes": list(data.steps),
                "auteur": data.author,
                "date": data.created_at,
                "popularite": data.popularity,
                "commentaires": list(data.comments),
            }
        return data


class Popularity(ApiModel):
    popularity: int = Field(alias="popularite")


class Pagination(ApiModel):
    page: int
    limit: int = Field(alias="limite")
    total: int
    pages: int


# --- User Schemas ---

class UserCreate(ApiModel):
    name: UserName = Field(alias="nom")
    email: Email
    password: NewPassword = Field(alias="motDePasse")


class UserLogin(ApiModel):
    email: Email
    password: Password = Field(alias="motDePasse")


class UserPublic(ApiModel):
    id: str
    name: str = Field(alias="nom")
    email: str

    @model_validator(mode='before')
    @classmethod
    def transform_from_orm(cls, data: Any) -> Any:
        if hasattr(data, "hashed_password"):  # Is an ORM object; the hash stays behind
            return {
                "id": data.id,
                "nom": data.name,
                "email": data.email,
                "createdAt": data.created_at,
                "updatedAt": data.updated_at,
            }
        return data


class User(UserPublic):
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


# --- Token Schemas ---

class TokenData(BaseModel):
    """
    Identity carried by a verified token.
    """
    id: str
    email: Optional[str] = None
    nom: Optional[str] = None


# --- Response envelopes ---

class Envelope(ApiModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: T


class Message(ApiModel):
    success: bool = True
    message: str


class RecipePage(ApiModel):
    success: bool = True
    data: List[Recipe]
    pagination: Pagination


class AuthResponse(ApiModel):
    success: bool = True
    message: str
    token: str
    user: UserPublic = Field(alias="utilisateur")
