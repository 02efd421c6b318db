from sqlalchemy import TIMESTAMP, Boolean, Column, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from inbox_api.database import Base


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (UniqueConstraint("tenant_id", "phone_number", name="uq_conversations_tenant_phone"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    phone_number = Column(Text, nullable=False)  # whatsapp:+502...
    mode = Column(Text, nullable=False, default="BOT")  # BOT, HUMAN
    human_handled = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)
    deleted_at = Column(TIMESTAMP(timezone=True))

    tenant = relationship("Tenant", back_populates="conversations")
    messages = relationship("Message", back_populates="conversation")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
