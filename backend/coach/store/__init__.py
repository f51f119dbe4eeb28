from .kv import JsonFileBackend, KeyValueBackend, MemoryBackend
from .profile import StoryStore, UserProfile, UserProfileStore

__all__ = [
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "StoryStore",
    "UserProfile",
    "UserProfileStore",
]
