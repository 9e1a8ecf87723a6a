"""Domain services: per-content callers of the agent executor."""

from lifepath.services.content import ContentServices
from lifepath.services.images import ImageServices, decode_data_url

__all__ = ["ContentServices", "ImageServices", "decode_data_url"]
