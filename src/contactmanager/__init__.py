"""
Contact manager: contact records with CRUD and CSV bulk upload.
"""

__version__ = "0.1.0"
