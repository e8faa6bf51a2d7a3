"""Job owner resolution.

Every strategy job, source and chunk belongs to one owner. The owner comes
from an ``Authorization: Bearer <owner>`` header where ``<owner>`` is either
``<user_id>`` (owner inside the local workspace) or ``<org_id>:<user_id>``.
No identity provider sits behind this; requests without the header act as
the local owner.
"""

import uuid
from typing import Annotated

from fastapi import Header, HTTPException, status

from backend.app.db.context import RequestContext

LOCAL_ORG_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
LOCAL_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")
LOCAL_OWNER = RequestContext(org_id=LOCAL_ORG_ID, user_id=LOCAL_USER_ID)


def parse_owner_token(token: str) -> RequestContext:
    """Turn an owner token into the context used to scope reads and writes.

    Raises:
        ValueError: If a part is not a UUID or the token has too many parts
    """
    parts = token.strip().split(":")
    if len(parts) == 1:
        return RequestContext(org_id=LOCAL_ORG_ID, user_id=uuid.UUID(parts[0]))
    if len(parts) == 2:
        return RequestContext(org_id=uuid.UUID(parts[0]), user_id=uuid.UUID(parts[1]))
    raise ValueError(f"Owner token has {len(parts)} parts")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_job_owner(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """FastAPI dependency resolving the owner of the current request.

    Args:
        authorization: Raw Authorization header

    Returns:
        Owner context; the local owner when no header is sent

    Raises:
        HTTPException: 401 on a non-bearer scheme or an unreadable owner token
    """
    if authorization is None or not authorization.strip():
        return LOCAL_OWNER

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Expected 'Authorization: Bearer <owner>'")

    try:
        return parse_owner_token(token)
    except ValueError as e:
        raise _unauthorized("Owner must be <user_id> or <org_id>:<user_id>") from e
