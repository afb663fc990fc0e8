from typing import Literal
from pydantic import BaseModel

Role = Literal["teacher", "student"]


class UserContext(BaseModel):
    """Identity resolved upstream; this service trusts it as-is."""
    user_id: str
    role: Role
