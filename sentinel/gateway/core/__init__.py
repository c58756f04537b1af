# Core modules

from .config import Settings, get_settings
from .services import GatewayServices, build_services, get_services

__all__ = ["Settings", "get_settings", "GatewayServices", "build_services", "get_services"]
