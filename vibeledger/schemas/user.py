from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr

class ActorContext(BaseModel):
    """Who is performing a ledger operation; stamped into created_by / updated_by."""
    user_id: int
    is_admin: bool = False

class UserCreate(BaseModel):
    full_name: str
    email: EmailStr
    is_active: bool = True
    is_admin: bool = False

class UserSchema(BaseModel):
    id: int
    full_name: Optional[str] = None
    email: EmailStr
    is_active: bool
    is_admin: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    exp: Optional[int] = None

    @property
    def user_id(self) -> Optional[int]:
        return int(self.sub) if self.sub and self.sub.isdigit() else None
