from pydantic import BaseModel, ConfigDict, Field, field_validator


class InboxSendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(alias="phoneNumber", min_length=1)
    message: str = Field(min_length=1, max_length=4096)

    @field_validator("phone_number", "message")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("value cannot be empty")
        return value


class InboxSendResponse(BaseModel):
    success: bool = True
    delivered: bool
    conversation_id: int = Field(serialization_alias="conversationId")
    message_id: int = Field(serialization_alias="messageId")
