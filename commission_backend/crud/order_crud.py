from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
from typing import List, Optional, Dict, Any
import logging

from commission_backend.models.order_model import Product, Order
from commission_backend.models.enums import OrderPaymentStatus
from commission_backend.schemas import order_schema as schemas

logger = logging.getLogger(__name__)


def _apply_order_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query
    if "customer_id" in filters and filters["customer_id"]:
        query = query.filter(Order.customer_id == filters["customer_id"])
    if "status" in filters and filters["status"]:
        query = query.filter(Order.status == filters["status"])
    if "payment_status" in filters and filters["payment_status"]:
        query = query.filter(Order.payment_status == filters["payment_status"])
    return query

# --- Product CRUD ---

def create_product(db: Session, product_in: schemas.ProductCreate) -> Product:
    logger.info(f"Creating product: {product_in.title}")
    db_product = Product(**product_in.model_dump())
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    logger.info(f"Product '{db_product.title}' (ID: {db_product.id}) created.")
    return db_product

def get_product(db: Session, product_id: int) -> Optional[Product]:
    logger.debug(f"Fetching product with ID: {product_id}")
    return db.query(Product).filter(Product.id == product_id).first()

def get_active_products(db: Session, skip: int = 0, limit: int = 100) -> List[Product]:
    return (
        db.query(Product)
        .filter(Product.is_active == True)
        .order_by(Product.id.asc())
        .offset(skip).limit(limit).all()
    )

def update_product(db: Session, product_id: int, product_in: schemas.ProductUpdate) -> Optional[Product]:
    db_product = get_product(db, product_id)
    if not db_product:
        logger.warning(f"Product with ID {product_id} not found for update.")
        return None

    update_data = product_in.model_dump(exclude_unset=True)
    logger.debug(f"Updating product ID {product_id} with data: {update_data}")
    for field, value in update_data.items():
        setattr(db_product, field, value)

    db.commit()
    db.refresh(db_product)
    logger.info(f"Product '{db_product.title}' (ID: {db_product.id}) updated.")
    return db_product

# --- Order CRUD ---

def create_order(db: Session, **fields) -> Order:
    db_order = Order(**fields)
    db.add(db_order)
    db.flush()
    logger.info(f"Order {db_order.order_number} (ID: {db_order.id}) created for customer {db_order.customer_id}, "
                f"total {db_order.total_amount}, referred_by_id {db_order.referred_by_id}.")
    return db_order

def get_order(db: Session, order_id: int) -> Optional[Order]:
    logger.debug(f"Fetching order with ID: {order_id}")
    return db.query(Order).options(joinedload(Order.product)).filter(Order.id == order_id).first()

def get_order_by_payment_reference(db: Session, payment_reference: str) -> Optional[Order]:
    return db.query(Order).filter(Order.payment_reference == payment_reference).first()

def get_paid_referred_orders(db: Session) -> List[Order]:
    """Paid orders carrying a referrer, for commission backfill."""
    return (
        db.query(Order)
        .options(joinedload(Order.product))
        .filter(Order.payment_status == OrderPaymentStatus.PAID, Order.referred_by_id.isnot(None))
        .order_by(Order.id.asc())
        .all()
    )

def get_orders(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    filters: Optional[Dict[str, Any]] = None
) -> List[Order]:
    query = _apply_order_filters(db.query(Order), filters)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit).all()

def count_orders(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    query = _apply_order_filters(db.query(func.count(Order.id)), filters)
    return query.scalar() or 0
