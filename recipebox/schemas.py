# schemas.py
# Defines the Pydantic models (schemas) for data validation and serialization.

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional, Any
from datetime import datetime


# Wire format is camelCase (cookTime, imageUrl, createdAt...), python side is snake_case
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- User Schemas ---
class UserUpsert(CamelModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


class User(UserUpsert):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Recipe Schemas ---
class RecipeBase(CamelModel):
    description: Optional[str] = None
    category: Optional[str] = None
    cook_time: Optional[str] = None
    servings: Optional[str] = None

    @field_validator("description", "category", "cook_time", "servings", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("title", mode="before", check_fields=False)
    @classmethod
    def strip_title(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("ingredients", "instructions", "tags", check_fields=False)
    @classmethod
    def drop_blank_lines(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        # Blank rows left over from the client form are not stored
        if value is None:
            return value
        return [line.strip() for line in value if line.strip()]


class RecipeCreate(RecipeBase):
    title: str = Field(..., min_length=1, json_schema_extra={"example": "Chocolate Chip Cookies"})
    ingredients: List[str] = Field(
        default_factory=list,
        json_schema_extra={"example": ["2 cups flour", "1 cup chocolate chips"]},
    )
    instructions: List[str] = Field(
        default_factory=list,
        json_schema_extra={"example": ["Preheat oven to 180C", "Mix and bake for 12 minutes"]},
    )
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None


class RecipeUpdate(RecipeBase):
    """
    Partial update. Only fields that were explicitly set are applied
    (see model_dump(exclude_unset=True) in the storage layer).
    """
    title: Optional[str] = Field(None, min_length=1)
    ingredients: Optional[List[str]] = None
    instructions: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None

    @field_validator("title", "ingredients", "instructions", mode="before")
    @classmethod
    def reject_explicit_null(cls, value: Any) -> Any:
        # These columns are never null; leave the field out to keep the stored value
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class Recipe(RecipeBase):
    id: int
    user_id: str
    title: str
    ingredients: List[str]
    instructions: List[str]
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Misc responses ---
class Message(BaseModel):
    message: str
