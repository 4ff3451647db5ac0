from __future__ import annotations

import uuid


def new_id(prefix: str) -> str:
    cleaned = str(prefix or "").strip() or "id"
    return f"{cleaned}_{uuid.uuid4().hex[:12]}"
