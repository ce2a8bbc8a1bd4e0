# Routers package: Thin Controllers (SRP / DIP)
from app.routers import reorder

__all__ = ["reorder"]
