from .cursors import CursorDB
from .event_attempts import EventAttemptDB
from .processed_events import ProcessedEventDB

__all__ = ["CursorDB", "EventAttemptDB", "ProcessedEventDB"]
