# -*- coding: utf-8 -*-
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from sqlalchemy.types import TypeDecorator

from khidma.infra.db import db


class JSONDict(TypeDecorator):
    """
    Store a Python dict in a TEXT column as JSON.
    Returns None for NULL and an empty dict for unreadable content.
    """
    impl = db.Text
    cache_ok = True

    def process_bind_param(self, value: Optional[Dict[str, Any]], dialect):
        if value is None:
            return None
        return json.dumps(value, default=str, ensure_ascii=False)

    def process_result_value(self, value: Optional[str], dialect):
        if value is None:
            return None
        try:
            v = json.loads(value)
            return v if isinstance(v, dict) else {}
        except ValueError:
            return {}
