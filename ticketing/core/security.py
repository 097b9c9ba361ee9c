"""
Staff identity supplied by the upstream auth/role service.

Authentication happens before requests reach this service; the gateway
forwards the authenticated staff member as X-Staff-Id / X-Staff-Name.
The core only records the identity on gate scans and manual tickets.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header


@dataclass(frozen=True)
class StaffIdentity:
    id: Optional[str] = None
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id or "staff"


async def get_current_staff(
    x_staff_id: Optional[str] = Header(None, max_length=64),
    x_staff_name: Optional[str] = Header(None, max_length=100),
) -> StaffIdentity:
    return StaffIdentity(id=x_staff_id, name=x_staff_name)
