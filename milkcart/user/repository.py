import uuid
from typing import Any, Dict, Optional
from sqlalchemy import select
from milkcart.common.custom_exceptions import NotFoundError
from milkcart.schema.full_schema import DeliveryPerson, Users


def _as_uuid(public_id) -> Optional[uuid.UUID]:
    try:
        return public_id if isinstance(public_id, uuid.UUID) else uuid.UUID(str(public_id))
    except (TypeError, ValueError):
        return None


async def identify_user_by_pid(session, user_pid) -> Optional[Dict[str, Any]]:
    pid = _as_uuid(user_pid)
    if pid is None:
        return None
    stmt = select(Users.id, Users.role).where(Users.public_id == pid, Users.is_active.is_(True))
    res = await session.execute(stmt)
    row = res.one_or_none()
    if not row:
        return None
    return {"id": row[0], "role": row[1]}


async def identify_delivery_person_by_pid(session, person_pid) -> Optional[Dict[str, Any]]:
    pid = _as_uuid(person_pid)
    if pid is None:
        return None
    stmt = select(DeliveryPerson).where(DeliveryPerson.public_id == pid)
    res = await session.execute(stmt)
    person = res.scalar_one_or_none()
    if not person:
        return None
    return {"id": person.id, "can_login": person.can_login}


async def get_user_by_pid(session, user_pid: uuid.UUID) -> Users:
    res = await session.execute(select(Users).where(Users.public_id == user_pid, Users.is_active.is_(True)))
    user = res.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found", details={"user_id": str(user_pid)})
    return user


async def get_users_by_ids(session, user_ids) -> Dict[int, Users]:
    ids = list(set(user_ids))
    if not ids:
        return {}
    res = await session.execute(select(Users).where(Users.id.in_(ids)))
    return {u.id: u for u in res.scalars().all()}
