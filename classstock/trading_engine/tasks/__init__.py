from . import reconcile_accounts, refresh_prices  # noqa: F401
