from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Numeric, Text, UniqueConstraint, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import date, datetime
import uuid
from enum import Enum
from invgen.core.database import Base

class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    CANCELLED = "CANCELLED"

# Display-only label, never persisted
OVERDUE = "OVERDUE"

class Invoice(Base):
    __tablename__="invoices"
    __table_args__ = (
        UniqueConstraint("user_id", "invoice_number", name="uq_invoices_user_number"),
    )
    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(Uuid(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    invoice_number = Column(String(32), nullable=False)
    status = Column(SQLEnum(InvoiceStatus, name="invoice_status"), default=InvoiceStatus.DRAFT, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    client = relationship("Client", back_populates="invoices")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )

    @property
    def display_status(self) -> str:
        if (
            self.status == InvoiceStatus.SENT
            and self.due_date is not None
            and self.due_date < date.today()
        ):
            return OVERDUE
        return self.status.value

    def __repr__(self):
        return f"Invoice(id={self.id}, invoice_number={self.invoice_number})"

class InvoiceItem(Base):
    __tablename__="invoice_items"
    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(512), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    invoice = relationship("Invoice", back_populates="items")

    def __repr__(self):
        return f"InvoiceItem(id={self.id}, description={self.description})"

class InvoiceSequence(Base):
    """Per-user invoice number counter."""
    __tablename__="invoice_sequences"
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"InvoiceSequence(user_id={self.user_id}, last_value={self.last_value})"
