# -*- coding: utf-8 -*-
"""Khidma marketplace payments API."""

__version__ = "0.4.0"
