from rental_api.routers import payments, termination_policies, termination_requests

__all__ = ["payments", "termination_policies", "termination_requests"]
