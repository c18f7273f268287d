from fastapi import HTTPException, Request

from shared.core import set_request_context
from marketplace.auth_local import decode_access_token
from marketplace.domain.status import Actor, Role

BEARER_PREFIX = "Bearer "


def get_current_actor(request: Request) -> Actor:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise HTTPException(status_code=401, detail="Missing token")
    token_data = decode_access_token(auth_header.split(" ", 1)[1])
    if not token_data or not token_data.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        role = Role(token_data.get("role"))
    except ValueError:
        raise HTTPException(status_code=403, detail="Unknown role") from None
    set_request_context(user_id=token_data["sub"])
    return Actor(id=token_data["sub"], role=role, name=token_data.get("name"))
