from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

EDIT_ADD_TEXT = "add_text"
EDIT_DRAW = "draw"
EDIT_TYPES = (EDIT_ADD_TEXT, EDIT_DRAW)


@dataclass(frozen=True)
class ImageEditEntity:
    id: str
    image_id: str  # The derived image produced by this edit
    edit_type: str
    edit_data: dict[str, Any]
    edited_by_user_id: str | None
    edited_at: datetime
