"""
Social media image formats offered on the social-share page.
"""

import re

from pydantic import BaseModel, ConfigDict, Field


class SocialFormat(BaseModel):
    """Target crop for one social network placement."""

    name: str = Field(..., description="Display name, also the lookup key")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    aspect_ratio: str = Field(..., description="Cloudinary aspect ratio, e.g. '4:5'")

    model_config = ConfigDict(frozen=True)

    @property
    def download_filename(self) -> str:
        """``Instagram Square (1:1)`` becomes ``instagram_square_(1:1).png``."""
        stem = re.sub(r"\s+", "_", self.name).lower()
        return f"{stem}.png"


SOCIAL_FORMATS: tuple[SocialFormat, ...] = (
    SocialFormat(name="Instagram Square (1:1)", width=1080, height=1080, aspect_ratio="1:1"),
    SocialFormat(name="Instagram Portrait (4:5)", width=1080, height=1350, aspect_ratio="4:5"),
    SocialFormat(name="Twitter Post (16:9)", width=1200, height=675, aspect_ratio="16:9"),
    SocialFormat(name="Twitter Header (3:1)", width=1500, height=500, aspect_ratio="3:1"),
    SocialFormat(name="Facebook Cover (205:78)", width=820, height=312, aspect_ratio="205:78"),
)

DEFAULT_SOCIAL_FORMAT = SOCIAL_FORMATS[0]


def get_social_format(name: str) -> SocialFormat | None:
    """Look a format up by display name, ignoring case and surrounding whitespace."""
    wanted = name.strip().lower()
    for social_format in SOCIAL_FORMATS:
        if social_format.name.lower() == wanted:
            return social_format
    return None


class SocialFormatResponse(BaseModel):
    name: str
    width: int
    height: int
    aspect_ratio: str


class SocialShareResponse(BaseModel):
    """Transformed image for one format plus a suggested download file name."""

    public_id: str
    format: SocialFormatResponse
    image_url: str
    download_url: str
    download_filename: str


class ImageUploadResponse(BaseModel):
    """Upload result in the shape the social-share page expects."""

    public_id: str = Field(..., alias="publicId")

    model_config = ConfigDict(populate_by_name=True)
