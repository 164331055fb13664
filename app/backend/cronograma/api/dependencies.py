"""Request-scoped dependencies shared by the schedule routes."""

from datetime import date


def get_reference_date() -> date:
    """Date used for lazy plan creation, document dates and the month picker.

    Overridden in tests so nothing below the API layer reads the wall clock.
    """

    return date.today()
