# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Keep them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKBELL_APP_NAME": "App display name (default: taskbell).",
    "TASKBELL_LOG_LEVEL": "Logging level (default: INFO).",
    "TASKBELL_APP_URL": "URL opened when a push notification is clicked (default: /).",
    # Console client
    "TASKBELL_USER_ID": "User id the console session acts as (default: local).",
    "TASKBELL_LOCAL_CHECK_INTERVAL_SECONDS": "Local notifier re-check interval (default: 30).",
    "TASKBELL_DEDUP_HORIZON_SECONDS": "How long fired local notifications are remembered (default: 86400).",
    # Sweep / push (fallback names without prefix are accepted)
    "TASKBELL_CRON_SECRET": "Shared secret the scheduler sends as 'Authorization: Bearer <secret>'.",
    "TASKBELL_VAPID_PUBLIC_KEY": "VAPID public key (also NEXT_PUBLIC_VAPID_PUBLIC_KEY).",
    "TASKBELL_VAPID_PRIVATE_KEY": "VAPID private key used to sign push messages.",
    "TASKBELL_VAPID_SUBJECT": "VAPID subject, e.g. mailto:admin@example.com.",
    "TASKBELL_PUSH_TTL_SECONDS": "Push message TTL (default: 86400).",
    "TASKBELL_PUSH_TIMEOUT_SECONDS": "Per-delivery timeout (default: 10).",
    # HTTP server
    "TASKBELL_SERVER_HOST": "Bind host for taskbell-server (default: 127.0.0.1).",
    "TASKBELL_SERVER_PORT": "Bind port for taskbell-server (default: 8000).",
    # Paths (gitignored)
    "TASKBELL_DATA_DIR": "Local data directory (default: .local/taskbell).",
    "TASKBELL_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "TASKBELL_SUBSCRIPTIONS_DB_PATH": (
        "SubscriptionStore SQLite path (default: <data_dir>/subscriptions.sqlite3)."
    ),
}
