"""Product model."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class Product(Base):
    """Product model for storing product information."""

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    unique_id = Column(String(36), nullable=False, unique=True)
    name = Column(String(500), nullable=False)
    image = Column(String(2048), nullable=True, default="")
    price = Column(Numeric(10, 2), nullable=False)
    category_id = Column(
        String(36), ForeignKey("categories.id"), nullable=False, index=True
    )
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    category = relationship("Category", lazy="joined")

    def __repr__(self):
        return f"<Product(id={self.id}, unique_id='{self.unique_id}', name='{self.name}')>"
