"""
HTML to PDF Conversion Service package.

This module provides a FastAPI application that converts uploaded HTML
documents to PDF in the background and exposes progress polling and download
endpoints.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
