# -*- coding: utf-8 -*-
from typing import Optional
from urllib.parse import urlsplit

from flask import request


def _json():
    """Safely parse JSON body or return empty dict."""
    return (request.get_json(silent=True) or {}) if request.data else {}


def request_origin() -> Optional[str]:
    """Site origin of the caller: Origin header, else scheme and host of Referer."""
    origin = request.headers.get("Origin")
    if origin:
        return origin
    referer = request.headers.get("Referer")
    if referer:
        parts = urlsplit(referer)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
    return None
