# backend/models/category.py
import enum
from sqlalchemy import Column, Integer, String, DateTime, Enum, func
from sqlalchemy.orm import relationship
from database import Base


# Lifecycle of catalog entries; retired entries stay in the database
class CatalogStatus(str, enum.Enum):
    ACTIVE = "Active"
    RETIRED = "Retired"


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    # Uniqueness is case-insensitive and enforced in services/catalog.py
    name = Column(String(100), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    image_url = Column(String, nullable=True)
    status = Column(Enum(CatalogStatus), nullable=False, default=CatalogStatus.ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    products = relationship("Product", back_populates="category")

    @property
    def is_active(self):
        return self.status == CatalogStatus.ACTIVE
