from rpg_social.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
