"""User profile models mirrored from the hosted `profiles` / `pending_users` tables."""
from typing import Optional

from sqlmodel import SQLModel


class Profile(SQLModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str = "user"
    approved: bool = False
    approved_at: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class PendingUser(SQLModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    created_at: Optional[str] = None
