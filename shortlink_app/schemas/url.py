from pydantic import BaseModel, HttpUrl, Field


class URLBase(BaseModel):
    long_url: HttpUrl = Field(..., description="The original URL to be shortened")


class URLCreate(URLBase):
    pass


class URLResponse(BaseModel):
    alias: str = Field(..., description="Generated 7-character alias")
    long_url: str
    short_url: str = Field(..., description="Base URL composed with the alias")


class URLStats(BaseModel):
    alias: str
    long_url: str
    clicks: int = Field(0, ge=0)
