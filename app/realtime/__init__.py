from app.realtime.connection_manager import ConnectionManager, EventPublisher

__all__ = ["ConnectionManager", "EventPublisher"]
