from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Rating(str, Enum):
    GOOD = "good"
    BAD = "bad"


class FeedbackCreate(BaseModel):
    message_id: Optional[str] = None
    conversation_id: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    rating: Rating
    feedback_text: Optional[str] = None
