from . import auth, health, scan, subjects, visits

__all__ = ["auth", "health", "scan", "subjects", "visits"]
