"""Pending client notices."""
from typing import List

from fastapi import APIRouter, Depends

from ...core.notify import Notice, StoredNotifier
from ...core.security import get_notifier

router = APIRouter(prefix="/notices", tags=["Notices"])


@router.get("", response_model=List[Notice])
async def drain_notices(notifier: StoredNotifier = Depends(get_notifier)):
    """Return queued notices (session warnings, unauthorized access) once."""
    return await notifier.drain()
