"""
Project-scoped Photo Catalog with AI Descriptions

This package imports image files into a per-project SQLite catalog, reads their
EXIF capture time and GPS position, sends each image to a vision model for a
natural-language description, and keeps the descriptions searchable through a
full-text index that follows every user edit and restore.
"""

__version__ = "1.0.0"
__author__ = "Your Name"
