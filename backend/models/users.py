# backend/models/users.py
from sqlalchemy import Column, Integer, String, Text
from database import Base

# Represents a user account: identity, display name, role and permission document
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    role = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    # Legacy admin flag; older rows hold 1, 't', 'true', 'TRUE' etc.
    is_admin = Column(String, nullable=True)

    # Serialized JSON document, e.g. {"transport_requests": {"approve": true}}
    permissions = Column(Text, nullable=True)
