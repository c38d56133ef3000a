"""
API route modules.
"""

from sonedit.api.routes import edit, effects, health, tracks

__all__ = ["edit", "effects", "health", "tracks"]
