from .staging import MediaStagingClient

__all__ = ["MediaStagingClient"]
