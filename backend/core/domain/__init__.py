"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF ``EXCEPTION_HANDLER`` translating the above.
notifications      Synchronous notification creation helper.
transactions       Helpers for ``transaction.atomic`` + ``select_for_update``.

Usage from any app::

    from core.domain.exceptions import DomainError, NoEligibleReceiver
    from core.domain.notifications import NotificationService
    from core.domain.transactions import atomic_commit, lock_for_update
"""
