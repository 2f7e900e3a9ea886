from twtxt_registry.services.registry_service import Registration, Registry, SyncReport, parse_account_list

__all__ = ["Registration", "Registry", "SyncReport", "parse_account_list"]
