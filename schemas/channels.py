"""Channel profile schema."""
from typing import Optional
from pydantic import ConfigDict

from .base import CamelModel


class ChannelProfile(CamelModel):
    """Public view of a user's channel with subscription counters."""
    fullname: str
    username: str
    avatar: str
    cover_image: Optional[str] = None
    subscriber_count: int = 0
    subscribed_to_count: int = 0
    is_subscribed: bool = False
    
    model_config = ConfigDict(from_attributes=True)
