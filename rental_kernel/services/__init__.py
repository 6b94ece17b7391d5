"""rental_kernel.services -- Cross-cutting collaborators (notifications)."""
