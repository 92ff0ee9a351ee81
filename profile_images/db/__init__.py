from .models import Base, User, DEFAULT_PROFILE_IMAGE

__all__ = ["Base", "User", "DEFAULT_PROFILE_IMAGE"]
