"""kvconn - managed Redis connection with redirect support and command retries.

This package provides a connection manager that lazily opens, authenticates and
caches a connection to a single Redis endpoint, follows runtime redirects, and
retries commands that fail because the connection dropped.
"""

__version__ = "0.1.0"
__author__ = "kvconn Contributors"

from kvconn.config import Settings, get_settings, load_settings_from_file, set_settings

__all__ = [
    "Settings",
    "__version__",
    "get_settings",
    "load_settings_from_file",
    "set_settings",
]
