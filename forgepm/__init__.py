"""forgepm - addon installer for multi-module Maven projects."""

__version__ = "0.1.0"
