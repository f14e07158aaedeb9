from typing import Optional

from pydantic import BaseModel, Field


class ExtractRequest(BaseModel):
    url: str = Field(..., min_length=1)
    html: Optional[str] = None
