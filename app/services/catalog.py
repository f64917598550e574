"""Category and product storage used by bulk uploads and reports."""
import logging
from typing import Optional

from sqlalchemy import insert
from sqlalchemy.orm import Query, Session, contains_eager

from app.models.category import Category
from app.models.product import Product
from app.schemas.report import ReportFilters

logger = logging.getLogger(__name__)


def get_category(db: Session, category_id: str) -> Optional[Category]:
    """Look up a category by primary key."""
    return db.get(Category, str(category_id))


def list_categories(db: Session) -> list[Category]:
    """All categories ordered by name."""
    return db.query(Category).order_by(Category.name.asc()).all()


def insert_products(db: Session, records: list[dict]) -> int:
    """
    Insert product rows in a single statement and commit.

    Args:
        records: Column dictionaries as built by the bulk upload processor

    Returns:
        Number of rows written
    """
    if not records:
        return 0

    db.execute(insert(Product), records)
    db.commit()
    logger.debug(f"💾 Inserted {len(records)} products")
    return len(records)


def filtered_products(db: Session, filters: ReportFilters) -> Query:
    """
    Build the product query for a report, newest first.

    All filters are optional and combined with AND. Price and date bounds
    are inclusive.
    """
    query = (
        db.query(Product)
        .join(Category, Product.category_id == Category.id)
        .options(contains_eager(Product.category))
    )

    if filters.category_id:
        query = query.filter(Product.category_id == str(filters.category_id))
    if filters.category_name:
        query = query.filter(Category.name.ilike(f"%{filters.category_name}%"))
    if filters.min_price is not None:
        query = query.filter(Product.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Product.price <= filters.max_price)
    if filters.start_date is not None:
        query = query.filter(Product.created_at >= filters.start_date)
    if filters.end_date is not None:
        query = query.filter(Product.created_at <= filters.end_date)

    return query.order_by(Product.created_at.desc())
