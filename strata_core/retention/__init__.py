from strata_core.retention.policy import GIB, RetentionPolicy

__all__ = ["GIB", "RetentionPolicy"]
