"""Configuration module for the ScoutID sync service."""
from .settings import AppConfig, configure_logging, load_settings

__all__ = ["AppConfig", "configure_logging", "load_settings"]
