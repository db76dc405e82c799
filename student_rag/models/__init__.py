from .base import UUIDModel
from .snippet import Snippet

__all__ = ["UUIDModel", "Snippet"]
