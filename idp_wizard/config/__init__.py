"""Configuration module for the IdP onboarding wizard."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
