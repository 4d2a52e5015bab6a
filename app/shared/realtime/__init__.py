from .broadcaster import ConnectionManager, connection_manager

__all__ = ["ConnectionManager", "connection_manager"]
