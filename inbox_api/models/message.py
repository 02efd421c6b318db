from sqlalchemy import TIMESTAMP, Column, Float, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import relationship

from inbox_api.database import Base


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_conversation_id_id", "conversation_id", "id"),)

    # Monotonic id doubles as the pagination cursor
    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False)
    direction = Column(Text, nullable=False)  # inbound, outbound
    body = Column(Text, nullable=False)
    provider_message_id = Column(Text)
    media_url = Column(Text)
    media_type = Column(Text)
    latitude = Column(Float)
    longitude = Column(Float)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
