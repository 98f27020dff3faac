from sqlalchemy import Column, String, Boolean, DateTime, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from invgen.core.database import Base

class User(Base):
    __tablename__="users"
    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255))
    verification_token = Column(String(64), unique=True, index=True, nullable=True)
    verification_sent_at = Column(DateTime, nullable=True)
    email_verified = Column(DateTime, nullable=True)

    # Profile
    first_name = Column(String(255))
    last_name = Column(String(255))
    company_name = Column(String(255))
    designation = Column(String(255))
    department = Column(String(255))

    # Branding
    profile_picture_url = Column(String(1024))
    company_logo_url = Column(String(1024))
    brand_theme = Column(String(64))

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    #Relationships
    clients = relationship("Client", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_verified(self) -> bool:
        return self.email_verified is not None

    @property
    def display_name(self) -> str:
        return self.company_name or self.name or self.email

    def __repr__(self):
        return f"User(id={self.id}, email={self.email})"
