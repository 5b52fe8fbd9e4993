from tenderhub.notifications.dispatcher import Notice, NotificationDispatcher

__all__ = ["Notice", "NotificationDispatcher"]
