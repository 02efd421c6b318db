from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

IMAGE_PLACEHOLDER = "[Imagen]"
LOCATION_PLACEHOLDER = "[Ubicación]"
EMPTY_PLACEHOLDER = "[Sin texto]"


class TwilioWebhookForm(BaseModel):
    """Form fields Twilio posts for an incoming WhatsApp message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    from_: str = Field(alias="From", min_length=1)
    body: Optional[str] = Field(default=None, alias="Body")
    message_sid: Optional[str] = Field(default=None, alias="MessageSid")
    num_media: int = Field(default=0, alias="NumMedia", ge=0)
    media_url: Optional[str] = Field(default=None, alias="MediaUrl0")
    media_content_type: Optional[str] = Field(default=None, alias="MediaContentType0")
    latitude: Optional[float] = Field(default=None, alias="Latitude", ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, alias="Longitude", ge=-180, le=180)

    @field_validator(
        "body",
        "message_sid",
        "media_url",
        "media_content_type",
        "latitude",
        "longitude",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("num_media", mode="before")
    @classmethod
    def blank_num_media(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0
        return value

    @model_validator(mode="after")
    def check_coordinates(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and Longitude must be sent together")
        return self

    @property
    def text(self) -> str:
        return self.body or ""

    @property
    def has_media(self) -> bool:
        return self.num_media > 0 and bool(self.media_url)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def stored_body(self) -> str:
        """Body persisted for the inbound message, with a placeholder when empty."""
        if self.text:
            return self.text
        if self.has_media:
            return IMAGE_PLACEHOLDER
        if self.has_location:
            return LOCATION_PLACEHOLDER
        return EMPTY_PLACEHOLDER
