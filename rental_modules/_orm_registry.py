"""
Module ORM Registry (``rental_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``rental_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import every ``rental_modules.*.orm`` module.  Idempotent."""
    # leasing first: payments and requests reference leases.id
    import rental_modules.leasing.orm  # noqa: F401
    import rental_modules.payments.orm  # noqa: F401
    import rental_modules.termination.orm  # noqa: F401
