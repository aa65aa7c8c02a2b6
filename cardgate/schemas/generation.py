"""Schemas for the card generation gateway."""
from pydantic import AliasChoices, BaseModel, Field


class CardGenerationRequest(BaseModel):
    """Free text to turn into a content card."""
    input_text: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("input_text", "inputText"),
        description="Source text for the card",
    )
