"""taskbell: task reminders delivered by Web Push and by a local fallback notifier."""

__version__ = "0.1.0"
