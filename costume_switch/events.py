import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class LifecycleEvent(Enum):
    TURN_START = "turn_start"
    TOKEN = "token"
    TURN_END = "turn_end"
    MESSAGE_FINALIZED = "message_finalized"
    CONVERSATION_RESET = "conversation_reset"


DEFAULT_EVENT_NAMES: Dict[str, LifecycleEvent] = {
    "generation_started": LifecycleEvent.TURN_START,
    "stream_token_received": LifecycleEvent.TOKEN,
    "smooth_stream_token_received": LifecycleEvent.TOKEN,
    "generation_ended": LifecycleEvent.TURN_END,
    "generation_stopped": LifecycleEvent.TURN_END,
    "message_received": LifecycleEvent.MESSAGE_FINALIZED,
    "chat_changed": LifecycleEvent.CONVERSATION_RESET,
}


def normalize_token_payload(*args: Any) -> Tuple[str, Optional[Any]]:
    """
    Extract (token_text, message_id) from a token event's arguments.

    Hosts deliver either (text, message_id) or a single mapping with a
    'token' or 'text' entry and an optional 'messageId'/'message_id'.
    """
    if not args:
        return "", None
    first = args[0]
    fallback_id = args[1] if len(args) > 1 else None
    if isinstance(first, Mapping):
        text = first.get('token')
        if text is None:
            text = first.get('text')
        message_id = first.get('messageId', first.get('message_id'))
        return ("" if text is None else str(text)), (fallback_id if message_id is None else message_id)
    return ("" if first is None else str(first)), fallback_id


class HostEventAdapter:
    """
    Single seam between a host event bus and the engine.

    Host-specific event names are mapped onto LifecycleEvent here; the
    engine itself only ever receives typed events.
    """

    def __init__(self, engine, event_names: Optional[Mapping[str, LifecycleEvent]] = None):
        self.engine = engine
        self.event_names: Dict[str, LifecycleEvent] = {
            name.lower(): event for name, event in (event_names or DEFAULT_EVENT_NAMES).items()
        }
        self.logger = logging.getLogger(__name__)

    def translate(self, event_name: str) -> Optional[LifecycleEvent]:
        return self.event_names.get(str(event_name or '').strip().lower())

    def dispatch(self, event_name: str, *args: Any) -> bool:
        """
        Forward a host event to the engine.

        Returns:
            True if the event name is known and was delivered
        """
        event = self.translate(event_name)
        if event is None:
            self.logger.debug(f"Ignoring unmapped host event '{event_name}'")
            return False

        if event is LifecycleEvent.TOKEN:
            text, message_id = normalize_token_payload(*args)
            self.engine.handle_event(event, message_id=message_id, text=text)
        elif event is LifecycleEvent.CONVERSATION_RESET:
            self.engine.handle_event(event)
        else:
            message_id = args[0] if args else None
            self.engine.handle_event(event, message_id=message_id)
        return True
