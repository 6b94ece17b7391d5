"""rental_api -- FastAPI HTTP surface over the payment and termination services."""

from rental_api.app import create_app

__all__ = ["create_app"]
