"""Package metadata for mailcraft."""

from __future__ import annotations

__app_name__ = "mailcraft"
__version__ = "0.3.0"
__author__ = "mailcraft contributors"
__description__ = "Validated MIME message composition with SMTP session configuration."

__all__ = ["__app_name__", "__author__", "__description__", "__version__"]
