"""
In-process pipeline events
"""

from typing import Dict, Any, Callable, List
import asyncio
from datetime import datetime

from app.core.logging import pipeline_logger


class EventEmitter:
    """Event emitter"""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._middleware: List[Callable] = []

    def on(self, event: str, handler: Callable):
        """Register a listener"""
        if event not in self._listeners:
            self._listeners[event] = []
        self._listeners[event].append(handler)

    def off(self, event: str, handler: Callable):
        """Remove a listener"""
        if event in self._listeners:
            try:
                self._listeners[event].remove(handler)
            except ValueError:
                pass

    def use(self, middleware: Callable):
        """Add middleware; returning None from it drops the event"""
        self._middleware.append(middleware)

    async def emit(self, event: str, data: Any = None, **kwargs):
        """Emit an event. Listener errors are logged, never raised."""
        event_data = {
            'event': event,
            'data': data,
            'timestamp': datetime.now(),
            **kwargs
        }

        for middleware in self._middleware:
            try:
                if asyncio.iscoroutinefunction(middleware):
                    event_data = await middleware(event_data)
                else:
                    event_data = middleware(event_data)

                if event_data is None:
                    return
            except Exception as e:
                pipeline_logger.error(f"Event middleware error: {e}")
                continue

        for handler in list(self._listeners.get(event, [])):
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(event_data)
                else:
                    handler(event_data)
            except Exception as e:
                pipeline_logger.error(f"Event handler error for '{event}': {e}")


# Global event emitter
event_emitter = EventEmitter()


class Events:
    TRANSCRIPTION_COMPLETED = "transcription.completed"
    TRANSCRIPTION_FAILED = "transcription.failed"
    TRANSCRIPT_EDITED = "transcript.edited"
    ANALYSIS_COMPLETED = "analysis.completed"
    ANALYSIS_FAILED = "analysis.failed"
    SCORECARD_RECOMPUTED = "scorecard.recomputed"
    REPORT_SHARED = "report.shared"


def log_middleware(event_data: Dict[str, Any]) -> Dict[str, Any]:
    """Log every emitted event"""
    data = event_data.get('data')
    pipeline_logger.info(
        f"Event: {event_data['event']} "
        f"recording={data.get('recording_id') if isinstance(data, dict) else None}"
    )
    return event_data


event_emitter.use(log_middleware)
