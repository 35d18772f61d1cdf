"""
Client settings built on top of ConfigObj. Configuration files are layered - packaged defaults,
os-specific, user and local overrides - and validated against a schema that also converts
the values to their proper types.
"""
from lyre.config.config import ClientSettings, load_config, load_settings

__all__ = ['ClientSettings', 'load_config', 'load_settings']
