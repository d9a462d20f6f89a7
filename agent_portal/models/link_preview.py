from typing import Optional

from pydantic import BaseModel


class LinkPreview(BaseModel):
    title: str
    description: Optional[str] = None
    image: Optional[str] = None
