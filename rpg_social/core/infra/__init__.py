from rpg_social.core.infra.audit_logger import AuditLogger

__all__ = ["AuditLogger"]
