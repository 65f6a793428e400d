from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

class UserProfile(BaseModel):
    """
    Identity profile received from the OAuth provider on callback.
    """
    id: str = Field(..., min_length=1, max_length=255, description="Stable identity issued by the provider")
    email: Optional[EmailStr] = Field(None, description="Email address, unique across users when present")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    profile_image_url: Optional[str] = Field(None, max_length=2048)


class UserResponse(BaseModel):
    """
    Schema for returning user data to the client.
    Preferences are served separately by the settings endpoint.
    """
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        """
        Tells Pydantic to read the data even if it is not a dict,
        but an ORM model (SQLAlchemy).
        """
        from_attributes = True


class IdentityCallback(BaseModel):
    """Body posted to the auth callback once the provider redirected back."""
    id_token: str = Field(..., min_length=1, description="JWT issued by the identity provider")
