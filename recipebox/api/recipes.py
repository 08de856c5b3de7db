# api/recipes.py
# Handles all API endpoints related to recipes.

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, status
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

# Import local modules
from recipebox import schemas
from recipebox import models
from recipebox.api.auth import get_current_user
from recipebox.storage import DatabaseStorage, get_storage
from recipebox.uploads import PendingImage, validated_image

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)

# Failures we report as a generic 500 (database or file system trouble)
INFRASTRUCTURE_ERRORS = (SQLAlchemyError, OSError)

def _invalid_recipe_data(errors: List[Dict[str, Any]]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": "Invalid recipe data", "errors": errors},
    )


def _parse_json_fields(raw_fields: Dict[str, Optional[str]]) -> Dict[str, Any]:
    """
    Decode the JSON-encoded array fields of a multipart recipe form.
    Fields that were not sent are left out of the result.
    """
    parsed: Dict[str, Any] = {}
    errors: List[Dict[str, Any]] = []
    for field, raw in raw_fields.items():
        if raw is None:
            continue
        try:
            parsed[field] = json.loads(raw)
        except json.JSONDecodeError as exc:
            errors.append({
                "type": "json_invalid",
                "loc": ["body", field],
                "msg": f"Invalid JSON: {exc.msg}",
                "input": raw,
            })
    if errors:
        raise _invalid_recipe_data(errors)
    return parsed


def _build_payload(model, fields: Dict[str, Any], json_fields: Dict[str, Optional[str]], image: Optional[PendingImage]):
    """
    Assemble and validate a create/update payload from form fields.
    Only values the client actually sent are passed on, which keeps partial
    updates partial.
    """
    data = {key: value for key, value in fields.items() if value is not None}
    data.update(_parse_json_fields(json_fields))
    if image is not None:
        data["image_url"] = image.url
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise _invalid_recipe_data(jsonable_encoder(exc.errors(include_url=False)))


@router.get("", response_model=List[schemas.Recipe])
def read_recipes(
        search: Optional[str] = None,
        category: Optional[str] = None,
        storage: DatabaseStorage = Depends(get_storage),
        current_user: models.User = Depends(get_current_user)
):
    """
    List the caller's recipes, optionally filtered by a text search over
    title and description and by category.
    """
    logger.debug(f"Fetching recipes for {current_user.id} with search={search!r}, category={category!r}.")
    try:
        return storage.search_recipes(current_user.id, query=search, category=category)
    except INFRASTRUCTURE_ERRORS:
        logger.exception("Error fetching recipes")
        raise HTTPException(status_code=500, detail="Failed to fetch recipes")


@router.get("/{recipe_id}", response_model=schemas.Recipe)
def read_recipe(
        recipe_id: int,
        storage: DatabaseStorage = Depends(get_storage),
        current_user: models.User = Depends(get_current_user)
):
    """
    Retrieve a single recipe by its ID.
    The lookup is by id alone; ownership is checked on the result, so a
    foreign recipe yields 403 rather than 404.
    """
    logger.debug(f"Fetching recipe with ID: {recipe_id}")
    try:
        db_recipe = storage.get_recipe(recipe_id)
    except INFRASTRUCTURE_ERRORS:
        logger.exception(f"Error fetching recipe {recipe_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch recipe")

    if db_recipe is None:
        logger.warning(f"Recipe with ID {recipe_id} not found.")
        raise HTTPException(status_code=404, detail="Recipe not found")
    if db_recipe.user_id != current_user.id:
        logger.warning(f"User {current_user.id} is not authorized to read recipe with ID: {recipe_id}")
        raise HTTPException(status_code=403, detail="Access denied")
    return db_recipe


@router.post("", response_model=schemas.Recipe, status_code=status.HTTP_201_CREATED)
def create_recipe(
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        category: Optional[str] = Form(None),
        cook_time: Optional[str] = Form(None, alias="cookTime"),
        servings: Optional[str] = Form(None),
        ingredients: str = Form("[]"),
        instructions: str = Form("[]"),
        tags: Optional[str] = Form(None),
        image: Optional[PendingImage] = Depends(validated_image),
        storage: DatabaseStorage = Depends(get_storage),
        current_user: models.User = Depends(get_current_user)
):
    """
    Create a new recipe for the currently authenticated user from a
    multipart form. ingredients, instructions and tags are JSON arrays.
    """
    logger.debug(f"User {current_user.id} is creating a new recipe.")
    recipe = _build_payload(
        schemas.RecipeCreate,
        {
            "title": title,
            "description": description,
            "category": category,
            "cook_time": cook_time,
            "servings": servings,
        },
        {"ingredients": ingredients, "instructions": instructions, "tags": tags or None},
        image,
    )
    try:
        if image is not None:
            image.save()
        return storage.create_recipe(current_user.id, recipe)
    except INFRASTRUCTURE_ERRORS:
        logger.exception("Error creating recipe")
        raise HTTPException(status_code=500, detail="Failed to create recipe")


@router.put("/{recipe_id}", response_model=schemas.Recipe)
def update_recipe(
        recipe_id: int,
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        category: Optional[str] = Form(None),
        cook_time: Optional[str] = Form(None, alias="cookTime"),
        servings: Optional[str] = Form(None),
        ingredients: Optional[str] = Form(None),
        instructions: Optional[str] = Form(None),
        tags: Optional[str] = Form(None),
        image: Optional[PendingImage] = Depends(validated_image),
        storage: DatabaseStorage = Depends(get_storage),
        current_user: models.User = Depends(get_current_user)
):
    """
    Partially update a recipe. Only fields present in the form change.
    Missing and foreign recipes both answer 404.
    """
    logger.debug(f"User {current_user.id} is updating recipe with ID: {recipe_id}")
    recipe = _build_payload(
        schemas.RecipeUpdate,
        {
            "title": title,
            "description": description,
            "category": category,
            "cook_time": cook_time,
            "servings": servings,
        },
        {
            "ingredients": ingredients or None,
            "instructions": instructions or None,
            "tags": tags or None,
        },
        image,
    )
    try:
        db_recipe = storage.update_recipe(recipe_id, current_user.id, recipe)
        # Only write the file once the owner-scoped update matched a row
        if db_recipe is not None and image is not None:
            image.save()
    except INFRASTRUCTURE_ERRORS:
        logger.exception(f"Error updating recipe {recipe_id}")
        raise HTTPException(status_code=500, detail="Failed to update recipe")

    if db_recipe is None:
        logger.warning(f"Recipe with ID {recipe_id} not found for update by {current_user.id}.")
        raise HTTPException(status_code=404, detail="Recipe not found or access denied")
    return db_recipe


@router.delete("/{recipe_id}", response_model=schemas.Message)
def delete_recipe(
        recipe_id: int,
        storage: DatabaseStorage = Depends(get_storage),
        current_user: models.User = Depends(get_current_user)
):
    """
    Delete a recipe owned by the caller.
    """
    logger.debug(f"User {current_user.id} is deleting recipe with ID: {recipe_id}")
    try:
        deleted = storage.delete_recipe(recipe_id, current_user.id)
    except INFRASTRUCTURE_ERRORS:
        logger.exception(f"Error deleting recipe {recipe_id}")
        raise HTTPException(status_code=500, detail="Failed to delete recipe")

    if not deleted:
        logger.warning(f"Recipe with ID: {recipe_id} not found for deletion by {current_user.id}.")
        raise HTTPException(status_code=404, detail="Recipe not found or access denied")
    return {"message": "Recipe deleted successfully"}
