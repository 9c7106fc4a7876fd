from .service import BadgeService

__all__ = ["BadgeService"]
