"""
Customer and Photo database models.

The claims engine only reads these; they are owned by the dashboard's
customer management screens.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from guardian.db.base import Base


class Customer(Base):
    """Roofing customer (property owner / policyholder)."""

    __tablename__ = "customers"

    customer_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip_code = Column(String(20), nullable=False)
    property_type = Column(String(50), nullable=True)

    policy_number = Column(String(100), nullable=True)
    insurance_carrier = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    claims = relationship("InsuranceClaim", back_populates="customer")
    photos = relationship("Photo", back_populates="customer")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Customer {self.full_name}>"


class Photo(Base):
    """Damage photo stored for a customer property."""

    __tablename__ = "photos"

    photo_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id"), nullable=False, index=True)
    url = Column(String(1000), nullable=False)
    filename = Column(String(255), nullable=False)
    category = Column(String(50), default="damage")  # e.g., damage, overview, interior
    description = Column(Text, nullable=True)
    captured_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    customer = relationship("Customer", back_populates="photos")

    def __repr__(self) -> str:
        return f"<Photo {self.filename}>"
