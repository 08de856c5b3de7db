# models.py
# Defines the SQLAlchemy ORM models for the database tables.

from sqlalchemy import Column, ForeignKey, Integer, String, Text, DateTime, JSON, func
from sqlalchemy.orm import relationship
from recipebox.db.session import Base


class User(Base):
    """
    User model for the 'users' table.
    Rows are upserted from the identity provider's token claims; the id is opaque.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    recipes = relationship("Recipe", back_populates="owner", cascade="all, delete-orphan")


class Recipe(Base):
    """
    Recipe model for the 'recipes' table.
    """
    __tablename__ = "recipes"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)  # free text, not enforced
    cook_time = Column(String, nullable=True)
    servings = Column(String, nullable=True)

    # Ordered lists of text lines
    ingredients = Column(JSON, nullable=False, default=list)
    instructions = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=True)

    image_url = Column(String, nullable=True)

    # Audit
    created_at = Column(DateTime, default=func.now(), index=True)
    updated_at = Column(DateTime, default=func.now())

    owner = relationship("User", back_populates="recipes")

    def __str__(self):
        return f"{self.id}: {self.title}, by {self.user_id}"
