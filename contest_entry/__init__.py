"""
Contest Entry Engine.
Automates submitting entries into web contests on behalf of user profiles.
"""

__version__ = "0.1.0"
