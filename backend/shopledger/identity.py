# Overview: Identifier generation and the acting user passed into workflows.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional


def new_id() -> str:
    """Opaque string id (uuid4) used for every entity and history entry."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Actor:
    """
    Who performed an operation.

    Authentication lives outside this service; routes build an Actor from
    request headers and pass it explicitly into the service layer.
    """
    user_id: Optional[str] = None
    user_name: Optional[str] = None


SYSTEM_ACTOR = Actor(user_id=None, user_name="System")
