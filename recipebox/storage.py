# storage.py
# Owns recipe persistence. Every recipe query except the single-record lookup
# is scoped by owner id in its SQL predicate.

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Request
from sqlalchemy import and_, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from recipebox import models
from recipebox import schemas

# Get a logger instance
logger = logging.getLogger(__name__)

# Backends with INSERT ... ON CONFLICT support
UPSERT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _like_pattern(text: str) -> str:
    """Wrap user text for a literal substring LIKE match (escape char is a backslash)."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class DatabaseStorage:
    """
    Recipe store backed by a SQLAlchemy session factory.

    Constructed once at process start (see main.py) and handed to the
    endpoint layer through the get_storage dependency. Each method opens its
    own session, so the object holds no per-request state.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _session(self) -> Session:
        # Loaded attributes stay readable after commit/close
        return self.session_factory(expire_on_commit=False)

    # --- User operations ---

    def get_user(self, user_id: str) -> Optional[models.User]:
        with self._session() as db:
            return db.get(models.User, user_id)

    def upsert_user(self, user: schemas.UserUpsert) -> models.User:
        """
        Insert the user, or update the stored profile fields if the id exists.

        Runs as a single INSERT ... ON CONFLICT DO UPDATE, so concurrent first
        requests for a new user cannot collide on the primary key.
        """
        data = user.model_dump()
        now = _utcnow()
        with self._session() as db:
            dialect = db.get_bind().dialect.name
            insert = UPSERT_INSERTS.get(dialect)
            if insert is None:
                raise NotImplementedError(f"User upsert is not supported on {dialect}")

            stmt = insert(models.User).values(**data, created_at=now, updated_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=[models.User.id],
                set_={
                    **{key: stmt.excluded[key] for key in data if key != "id"},
                    "updated_at": now,
                },
            )
            logger.debug(f"Upserting user {user.id}")
            db.execute(stmt)
            db.commit()
            return db.get(models.User, user.id)

    # --- Recipe operations ---

    def get_recipes_by_user(self, user_id: str) -> List[models.Recipe]:
        """
        All recipes owned by user_id, newest first.
        """
        logger.debug(f"Retrieving all recipes for user {user_id}")
        with self._session() as db:
            return (
                db.query(models.Recipe)
                .filter(models.Recipe.user_id == user_id)
                .order_by(models.Recipe.created_at.desc(), models.Recipe.id.desc())
                .all()
            )

    def get_recipe(self, recipe_id: int) -> Optional[models.Recipe]:
        """
        Look up a recipe by id alone. Ownership is checked by the caller.
        """
        logger.debug(f"Retrieving recipe with id {recipe_id}")
        with self._session() as db:
            return db.get(models.Recipe, recipe_id)

    def create_recipe(self, user_id: str, recipe: schemas.RecipeCreate) -> models.Recipe:
        """
        Insert a recipe owned by user_id. Any owner in the payload is ignored.
        """
        logger.debug(f"Creating recipe for user {user_id}: {recipe.title}")
        data = recipe.model_dump(exclude={"id", "user_id"})
        now = _utcnow()
        db_recipe = models.Recipe(**data, user_id=user_id, created_at=now, updated_at=now)
        with self._session() as db:
            db.add(db_recipe)
            db.commit()
            db.refresh(db_recipe)
            return db_recipe

    def update_recipe(
        self, recipe_id: int, user_id: str, recipe: schemas.RecipeUpdate
    ) -> Optional[models.Recipe]:
        """
        Apply the explicitly set fields of a partial update.
        Returns None when no recipe matches both id and owner.
        """
        logger.debug(f"Updating recipe {recipe_id} for user {user_id}")
        update_data = recipe.model_dump(exclude_unset=True, exclude={"id", "user_id"})
        with self._session() as db:
            db_recipe = (
                db.query(models.Recipe)
                .filter(and_(models.Recipe.id == recipe_id, models.Recipe.user_id == user_id))
                .first()
            )
            if db_recipe is None:
                logger.debug(f"Recipe {recipe_id} not found for user {user_id} - nothing to update")
                return None

            for key, value in update_data.items():
                setattr(db_recipe, key, value)
            db_recipe.updated_at = _utcnow()

            db.commit()
            db.refresh(db_recipe)
            return db_recipe

    def delete_recipe(self, recipe_id: int, user_id: str) -> bool:
        """
        Hard delete. True only if a row owned by user_id was removed.
        """
        with self._session() as db:
            deleted = (
                db.query(models.Recipe)
                .filter(and_(models.Recipe.id == recipe_id, models.Recipe.user_id == user_id))
                .delete(synchronize_session=False)
            )
            db.commit()
        if deleted:
            logger.debug(f"Deleted recipe {recipe_id}")
        else:
            logger.debug(f"Recipe {recipe_id} not found for user {user_id} - nothing to delete")
        return deleted > 0

    def search_recipes(
        self, user_id: str, query: Optional[str] = None, category: Optional[str] = None
    ) -> List[models.Recipe]:
        """
        Owner's recipes, optionally narrowed by a case-insensitive substring
        match on title or description and an exact category match. Both
        filters are ANDed; empty values are ignored.
        """
        logger.debug(f"Searching recipes for user {user_id} with query={query!r}, category={category!r}")
        condition = models.Recipe.user_id == user_id

        if query:
            pattern = _like_pattern(query)
            condition = and_(
                condition,
                or_(
                    models.Recipe.title.ilike(pattern, escape="\\"),
                    models.Recipe.description.ilike(pattern, escape="\\"),
                ),
            )

        if category:
            condition = and_(condition, models.Recipe.category == category)

        with self._session() as db:
            return (
                db.query(models.Recipe)
                .filter(condition)
                .order_by(models.Recipe.created_at.desc(), models.Recipe.id.desc())
                .all()
            )


def get_storage(request: Request) -> DatabaseStorage:
    """
    FastAPI dependency returning the process-wide store.
    Tests swap it out through app.dependency_overrides.
    """
    return request.app.state.storage
