"""
services package

Business rules for each resource. Every operation takes the AppContext as its
first argument; import the module you need directly, e.g.:

    from pleasure_holidays.services import bookings
"""

__all__: list[str] = []
