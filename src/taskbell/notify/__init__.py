"""
Notification subsystem.

Components:
- window.py: minute-window matching (which tasks are due "now")
- messages.py: notification text shared by push and local notifications
- subscriptions.py: SQLite registry of push endpoints per user
- webpush_sender.py: Web Push transport (pywebpush) with gone/failed classification
- dispatcher.py: the per-minute sweep: due tasks -> subscriptions -> deliveries -> summary
- local_notifier.py: in-client fallback that fires local notifications while the app is open
"""
