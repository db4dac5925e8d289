# validators.py
# Reusable field constraints. Each factory returns a plain function suitable
# for pydantic's AfterValidator / BeforeValidator; schemas.py combines them
# with Annotated. A failing constraint raises PydanticCustomError so that the
# French message reaches the client untouched.

import re
from typing import Annotated, Any, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BeforeValidator
from pydantic_core import PydanticCustomError

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def _fail(error_type: str, message: str):
    raise PydanticCustomError(error_type, message)


def not_blank(message: str):
    def check(value: str) -> str:
        value = value.strip()
        if not value:
            _fail("not_blank", message)
        return value
    return check


def optional_not_blank(message: str):
    """
    Like not_blank, but lets an absent value (None) through.
    """
    check_present = not_blank(message)

    def check(value):
        return None if value is None else check_present(value)
    return check


def length_between(minimum: int, maximum: int, message: str):
    def check(value: str) -> str:
        if not minimum <= len(value) <= maximum:
            _fail("length_between", message)
        return value
    return check


def max_length(maximum: int, message: str):
    def check(value: str) -> str:
        if len(value) > maximum:
            _fail("max_length", message)
        return value
    return check


def min_length(minimum: int, message: str):
    def check(value: str) -> str:
        if len(value) < minimum:
            _fail("min_length", message)
        return value
    return check


def non_empty_list(message: str):
    def check(value: list) -> list:
        if len(value) == 0:
            _fail("non_empty_list", message)
        return value
    return check


def int_range(minimum: int, maximum: int | None, message: str):
    def check(value: int) -> int:
        if value < minimum or (maximum is not None and value > maximum):
            _fail("int_range", message)
        return value
    return check


def is_object_id(value: str) -> bool:
    return bool(OBJECT_ID_PATTERN.match(value or ""))


def object_id(message: str = "ID invalide"):
    def check(value: str) -> str:
        if not is_object_id(value):
            _fail("object_id", message)
        return value.lower()
    return check


def normalize_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def email_address(message: str = "Veuillez fournir un email valide"):
    def check(value: str) -> str:
        # Any local@domain.tld shape, special-use domains (.local, .test) included
        try:
            validated = validate_email(value, check_deliverability=False, globally_deliverable=False)
        except EmailNotValidError:
            _fail("email", message)
        if "." not in validated.domain:
            _fail("email", message)
        return value
    return check


# --- Composed field types ---

def NonBlankStr(message: str):
    return Annotated[str, AfterValidator(not_blank(message))]


def NonBlankList(list_message: str, item_message: str):
    return Annotated[
        List[Annotated[str, AfterValidator(not_blank(item_message))]],
        AfterValidator(non_empty_list(list_message)),
    ]


RecipeTitle = Annotated[
    str,
    AfterValidator(not_blank("Le titre est obligatoire")),
    AfterValidator(length_between(3, 100, "Le titre doit contenir entre 3 et 100 caractères")),
]

Ingredients = NonBlankList("Au moins un ingrédient est requis", "Chaque ingrédient doit être non vide")

Steps = NonBlankList("Au moins une étape est requise", "Chaque étape doit être non vide")

RecipeAuthor = NonBlankStr("L'auteur est obligatoire")

CommentAuthor = NonBlankStr("L'auteur du commentaire est obligatoire")

CommentBody = Annotated[
    str,
    AfterValidator(not_blank("Le contenu du commentaire est obligatoire")),
    AfterValidator(max_length(500, "Le commentaire ne peut pas dépasser 500 caractères")),
]

UserName = Annotated[
    str,
    AfterValidator(not_blank("Le nom est obligatoire")),
    AfterValidator(length_between(2, 50, "Le nom doit contenir entre 2 et 50 caractères")),
]

Email = Annotated[
    str,
    BeforeValidator(normalize_email),
    AfterValidator(not_blank("L'email est obligatoire")),
    AfterValidator(email_address()),
]

NewPassword = Annotated[
    str,
    AfterValidator(min_length(6, "Le mot de passe doit contenir au moins 6 caractères")),
]

Password = Annotated[
    str,
    AfterValidator(min_length(1, "Le mot de passe est obligatoire")),
]

ObjectId = Annotated[str, AfterValidator(object_id())]

Page = Annotated[int, AfterValidator(int_range(1, None, "La page doit être un entier positif"))]

Limit = Annotated[int, AfterValidator(int_range(1, 100, "La limite doit être entre 1 et 100"))]

IngredientFilter = Annotated[
    Optional[str], AfterValidator(optional_not_blank("L'ingrédient ne peut pas être vide"))
]

AuthorFilter = Annotated[
    Optional[str], AfterValidator(optional_not_blank("L'auteur ne peut pas être vide"))
]
