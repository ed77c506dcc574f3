# -*- coding: utf-8 -*-
from khidma.infra.db import db

from .user import User
from .provider import HomeCook, HouseWorker
from .dish import FoodDish
from .food_order import FoodOrder
from .notification import Notification

__all__ = [
    "db",
    "User",
    "HomeCook",
    "HouseWorker",
    "FoodDish",
    "FoodOrder",
    "Notification",
]
