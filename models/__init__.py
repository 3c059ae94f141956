from .base import Base
from .users import User
from .subscriptions import Subscription

__all__ = ["Base", "User", "Subscription"]
