# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Keep local values in .env (gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "DAYMINDER_APP_NAME": "App display name (default: dayminder).",
    "DAYMINDER_LOG_LEVEL": "Console logging level (default: INFO).",
    # Connector / delivery
    "DAYMINDER_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "DAYMINDER_NOTIFICATIONS_ENABLED": (
        "Grant reminder delivery at startup (true/false, default: true). "
        "When false, reminders are still planned but never shown."
    ),
    # Reminder loop
    "DAYMINDER_REMINDER_POLL_SECONDS": "How often due reminders are checked (default: 15, min 0.5).",
    # Views
    "DAYMINDER_WEEK_VIEW_DAYS": "Number of days shown by /week (default: 7).",
    # Paths (gitignored)
    "DAYMINDER_DATA_DIR": "Local data directory (default: .local/dayminder).",
    "DAYMINDER_DB_PATH": "Blob store SQLite path (default: <data_dir>/dayminder.sqlite3).",
}
