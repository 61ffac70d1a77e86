import enum
from datetime import datetime, timezone

from pydantic import BaseModel


class RoleEnum(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class UserEntry(BaseModel):
    name: str
    role: RoleEnum = RoleEnum.USER
    pw_hash: str
    pw_oneuse: bool = False
    expires: str | None = None  # RFC 3339

    def is_expired(self, now: datetime | None = None) -> bool:
        if not self.expires:
            return False
        try:
            expires = datetime.fromisoformat(self.expires.replace("Z", "+00:00"))
        except ValueError:
            # An unreadable date locks the account rather than leaving it open
            return True
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return (now or datetime.now(timezone.utc)) >= expires
