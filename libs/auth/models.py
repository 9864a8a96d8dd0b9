import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, enum.Enum):
    SHOPPER = "shopper"
    SHIPPER = "shipper"
    ADMIN = "admin"
    SERVICE_ROLE = "service_role"
    # Internal actor for transitions the service drives itself.
    SYSTEM = "system"


ADMIN_ROLES = {Role.ADMIN, Role.SERVICE_ROLE}


class AuthUser(BaseModel):
    """
    Represents an authenticated caller decoded from a bearer JWT.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: Role = Role.SHOPPER

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_system(self) -> bool:
        return self.role == Role.SYSTEM


SYSTEM_ACTOR = AuthUser(user_id="system", role=Role.SYSTEM)
