from typing import Any

MESSAGE_EVENT = 'message'


def unwrap_message_payload(value: Any) -> Any:
    """Strip ``['message', *payload]`` event framing, possibly nested.

    A single trailing element is returned as is, several are returned as a list and
    a bare ``['message']`` frame carries nothing (None). Anything that is not such a
    frame is returned untouched.
    """
    current = value
    while isinstance(current, list | tuple) and len(current) > 0:
        event, *rest = current
        if not isinstance(event, str) or event.lower() != MESSAGE_EVENT:
            break
        if not rest:
            return None
        current = rest[0] if len(rest) == 1 else rest
    return current


def wrap_message_payload(payload: Any) -> list[Any]:
    return [MESSAGE_EVENT, payload]
