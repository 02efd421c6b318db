from sqlalchemy import TIMESTAMP, Column, Integer, Text
from sqlalchemy.orm import relationship

from inbox_api.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(Text, nullable=False, unique=True, index=True)
    name = Column(Text, nullable=False)
    provider_account_id = Column(Text)
    provider_auth_secret = Column(Text)
    sender_address = Column(Text)  # e.g. whatsapp:+14155238886
    environment = Column(Text, nullable=False, default="sandbox")  # sandbox, production
    created_at = Column(TIMESTAMP(timezone=True))

    conversations = relationship("Conversation", back_populates="tenant")
    contacts = relationship("Contact", back_populates="tenant")
