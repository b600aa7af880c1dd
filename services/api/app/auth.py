import hmac
from dataclasses import dataclass
from fastapi import Request, HTTPException, status

from .config import get_settings

@dataclass
class UserCtx:
    username: str
    roles: set[str]

def get_user(request: Request) -> UserCtx:
    # oauth2-proxy sets X-Auth-Request-Preferred-Username and X-Auth-Request-Groups
    username = request.headers.get("X-Auth-Request-Preferred-Username") or request.headers.get("X-Auth-Request-User") or "unknown"
    groups = request.headers.get("X-Auth-Request-Groups", "")
    roles = set([g.strip() for g in groups.split(",") if g.strip()])
    return UserCtx(username=username, roles=roles)

def require_role(user: UserCtx, *allowed: str):
    if not (user.roles.intersection(set(allowed))):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

def is_agent(request: Request) -> bool:
    # the desktop agent sits outside oauth2-proxy and authenticates with a shared key
    expected = get_settings().agent_key
    supplied = request.headers.get("X-Agent-Key", "")
    return bool(expected) and hmac.compare_digest(supplied.encode(), expected.encode())

def require_agent(request: Request, *allowed: str) -> UserCtx:
    if is_agent(request):
        return UserCtx(username="agent", roles={"agent"})
    u = get_user(request)
    require_role(u, *allowed)
    return u
