from labseed.config.settings import Credentials, Settings, get_settings, resolve_credentials

__all__ = ["Credentials", "Settings", "get_settings", "resolve_credentials"]
