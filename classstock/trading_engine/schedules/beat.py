from celery.schedules import crontab

# Crontabs are evaluated in CELERY_TIMEZONE (Asia/Seoul).
beat_schedule = {
    # Advance simulated prices once the 16:10 KST settlement cutoff passes.
    "refresh_prices_settlement": {
        "task": "trading_engine.refresh_prices",
        "schedule": crontab(minute=10, hour=16),
        "args": (),
    },
    # Catch-up run; a second call on the same day is a no-op.
    "refresh_prices_catch_up": {
        "task": "trading_engine.refresh_prices",
        "schedule": crontab(minute=0, hour=17),
        "args": (),
    },
    # Live quotes during the KRX session when a feed is configured.
    "refresh_prices_intraday": {
        "task": "trading_engine.refresh_prices",
        "schedule": crontab(minute="*", hour="9-15", day_of_week="mon-fri"),
        "args": (),
    },
    # Report cash and holding drift against the transaction trail.
    "reconcile_accounts_daily": {
        "task": "trading_engine.reconcile_accounts",
        "schedule": crontab(minute=30, hour=17),
        "args": (),
    },
}
