# deps/auth.py
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.enrollments.model import Actor, ActorType
from security import decode_token

bearer = HTTPBearer(auto_error=False)

ROLES = {"owner", "admin", "member", "viewer"}


class CurrentUser:
    def __init__(self, user_id: str, organization_id: str, role: str, name: str | None = None):
        self.user_id = user_id
        self.organization_id = organization_id
        self.role = role
        self.name = name

    def as_actor(self) -> Actor:
        return Actor(type=ActorType.BRAND, id=self.user_id, name=self.name)


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> CurrentUser:
    if not creds:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    # must be "Bearer"
    if (creds.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    payload = decode_token(creds.credentials)
    sub = payload.get("sub")
    org_id = payload.get("org_id")
    role = (payload.get("role") or "").strip().lower()
    if not sub or not org_id or role not in ROLES:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    return CurrentUser(user_id=str(sub), organization_id=str(org_id), role=role, name=payload.get("name"))
