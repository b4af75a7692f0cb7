import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import AppSettings


class ResumeOffer(BaseModel):
    """Offer to continue a partially watched video from its saved position."""
    model_config = ConfigDict(frozen=True)

    video_id: int
    percent: float = Field(..., description="Stored progress when the video was selected")

    def seek_position(self, duration: float) -> Optional[float]:
        if not duration or duration <= 0 or not math.isfinite(duration):
            return None
        return self.percent / 100 * duration


def build_resume_offer(video_id: int, percent: float, settings: AppSettings) -> Optional[ResumeOffer]:
    """Only videos strictly between the resume bounds are worth offering."""
    if settings.resume_min_pct < percent < settings.resume_max_pct:
        return ResumeOffer(video_id=video_id, percent=percent)
    return None
