from sqlalchemy import (
    Column, Integer, String, Text, Boolean, ForeignKey, TIMESTAMP, DECIMAL,
    Enum as SAEnum
)
from sqlalchemy.orm import relationship

from commission_backend.core.database import Base, utcnow
from commission_backend.models.enums import OrderPaymentStatus, OrderStatus

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(DECIMAL(10, 2), nullable=False)
    # Flat amount paid to the referring affiliate per order, independent of price
    affiliate_commission_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    orders = relationship("Order", back_populates="product")

    def __repr__(self):
        return f"<Product(id={self.id}, title='{self.title}', price={self.price})>"

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(64), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)

    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(DECIMAL(10, 2), nullable=False)
    total_amount = Column(DECIMAL(10, 2), nullable=False)

    payment_status = Column(SAEnum(OrderPaymentStatus, name="order_payment_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                            nullable=False, default=OrderPaymentStatus.PENDING, index=True)
    status = Column(SAEnum(OrderStatus, name="order_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=OrderStatus.PENDING, index=True)
    payment_reference = Column(String(255), nullable=True, unique=True, index=True)

    # Captured from the customer's referrer at purchase time
    referred_by_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    customer = relationship("User", foreign_keys=[customer_id])
    referred_by = relationship("User", foreign_keys=[referred_by_id])
    product = relationship("Product", back_populates="orders")

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', total={self.total_amount}, status='{self.status}')>"
