"""HTTP interface for the image-to-PDF converter."""

from .app import create_app

__all__ = ["create_app"]
