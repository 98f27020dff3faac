from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from invgen.core.database import Base

class Client(Base):
    __tablename__="clients"
    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255))
    email = Column(String(255), nullable=False)
    phone = Column(String(64))
    address = Column(String(512))
    website = Column(String(255))
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    #Relationships
    user = relationship("User", back_populates="clients")
    invoices = relationship("Invoice", back_populates="client")

    @property
    def display_name(self) -> str:
        return self.contact_name or self.company_name

    def __repr__(self):
        return f"Client(id={self.id}, company_name={self.company_name})"
