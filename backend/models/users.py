# backend/models/users.py
from sqlalchemy import Column, Integer, String, DateTime, func
from database import Base

# Roles understood by role_required()
ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"


# Represents a user account with authentication details and system role
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_CUSTOMER)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)

    # Default contact and shipping details
    phone_number = Column(String, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    country = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_admin(self):
        return (self.role or "").lower() == ROLE_ADMIN
