from __future__ import annotations

from typing import Literal, Optional
from pydantic import BaseModel, Field


Voice = Literal["nova", "alloy", "echo", "coral", "verse", "flow"]


class Product(BaseModel):
    id: int = Field(ge=1, le=10, description="Showcase slot number read out on stream")
    url: str
    name: str = ""
    price: str = ""
    description: str = ""
    image: str = ""


class ProductCreate(BaseModel):
    id: int = Field(ge=1, le=10)
    url: str = Field(min_length=1)


class LiveConfig(BaseModel):
    developer_mode: bool = True
    token_limit: int = 1_000_000
    tokens_used: int = 0
    voice: Voice = "nova"


class LiveConfigUpdate(BaseModel):
    developer_mode: Optional[bool] = None
    token_limit: Optional[int] = Field(default=None, ge=0)
    tokens_used: Optional[int] = Field(default=None, ge=0)
    voice: Optional[Voice] = None


class StartLiveRequest(BaseModel):
    username: str = ""


class StartLiveResponse(BaseModel):
    success: bool = True
    username: str


class StopLiveResponse(BaseModel):
    success: bool = True


class LiveStatusResponse(BaseModel):
    state: str
    channel: Optional[str] = None
    idle_deadline_in: Optional[float] = Field(default=None, description="Seconds until the idle promotion fires")


class TTSRequest(BaseModel):
    text: str = Field(min_length=1)
    voice: Voice = "nova"
