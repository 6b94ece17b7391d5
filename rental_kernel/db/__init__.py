"""rental_kernel.db -- Declarative base and engine/session helpers."""
