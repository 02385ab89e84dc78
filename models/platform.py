from pydantic import BaseModel, Field
from typing import Optional


class Platform(BaseModel):
    id: Optional[int] = None
    name: str = Field(..., description="Short lower-case platform key, e.g. 'evg'")
    base_url: Optional[str] = Field(None, description="Listing site root, adapters fall back to their default")
    enabled: bool = True
