from .settings import ApiSettings, BridgeSettings, get_api_settings, get_settings

__all__ = ["ApiSettings", "BridgeSettings", "get_api_settings", "get_settings"]
