# backend/models/product.py
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, ForeignKey, DateTime, Enum, CheckConstraint, func
)
from sqlalchemy.orm import relationship
from database import Base
from models.category import CatalogStatus


# A sellable catalog item.
# Price columns are guarded by check constraints; stock may never go negative.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(String(1000), nullable=False, default="")

    price = Column(Float, CheckConstraint("price > 0"), nullable=False)
    sale_price = Column(Float, CheckConstraint("sale_price IS NULL OR sale_price > 0"), nullable=True)

    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)

    image_url = Column(String, nullable=True)
    status = Column(Enum(CatalogStatus), nullable=False, default=CatalogStatus.ACTIVE, index=True)
    is_featured = Column(Boolean, nullable=False, default=False)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    category = relationship("Category", back_populates="products")
    reviews = relationship("ProductReview", back_populates="product", cascade="all, delete-orphan")

    @property
    def is_active(self):
        return self.status == CatalogStatus.ACTIVE

    @property
    def effective_price(self):
        # Sale price only applies when it actually undercuts the list price
        if self.sale_price is not None and 0 < self.sale_price < self.price:
            return self.sale_price
        return self.price
