"""
Nomadays back-office core: trip selection and template sync.
"""

__version__ = "1.0.0"
