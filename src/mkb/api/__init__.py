"""
mkb.api

API package for the killboard service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring and request/response models.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Handlers stay thin: validate, enqueue or read, and return.
