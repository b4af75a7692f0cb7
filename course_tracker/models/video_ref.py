from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class VideoRef(BaseModel):
    """
    Represents a single video of the active folder listing.
    Replaced wholesale when the folder is reselected or the file is renamed.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = Field(..., description="Unique within a folder listing, stable for the session")
    title: str = Field(..., description="Display title derived from the file name")
    file_path: str = Field(..., alias="filePath", description="Absolute path to the video file")

    # Data URL of the encoded still image once generated
    thumbnail: Optional[str] = Field(None, description="Encoded thumbnail image")

    def with_thumbnail(self, thumbnail: Optional[str]) -> "VideoRef":
        return self.model_copy(update={"thumbnail": thumbnail})
