"""Pydantic models for media handed over by the capture device."""

from pydantic import BaseModel, Field


class Still(BaseModel):
    """A single still frame."""

    data: bytes = Field(description="Encoded image bytes")
    media_type: str = Field(default="image/jpeg", description="MIME type of the image")

    @property
    def extension(self) -> str:
        if "png" in self.media_type:
            return "png"
        return "jpg"


class Artifact(BaseModel):
    """A finished recording, flushed and ready to persist."""

    data: bytes = Field(description="Encoded video bytes")
    extension: str = Field(default="webm", description="File extension without the dot")
