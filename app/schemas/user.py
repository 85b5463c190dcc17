#app\schemas\user.py
from pydantic import BaseModel, EmailStr, ConfigDict

class UserOut(BaseModel):
    id: int
    email: EmailStr
    name: str | None = None
    avatar_url: str | None = None
    is_active: bool
    role: str

    model_config = ConfigDict(from_attributes=True)
