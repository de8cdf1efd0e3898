from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from ledger_engine.database import get_db

_DB_DEP = Depends(get_db)


def get_actor_id(
    x_user_id: Optional[str] = Header(default=None, description="Acting user id"),
) -> Optional[int]:
    """Acting user id as forwarded by the upstream gateway.

    Authentication happens upstream; a missing header means an anonymous
    (system) actor and is recorded as ``None``.
    """

    if x_user_id is None or not str(x_user_id).strip():
        return None
    try:
        return int(str(x_user_id).strip())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="X-User-Id must be an integer"
        ) from None


_ACTOR_DEP = Depends(get_actor_id)
