import re
import json

SSE_EVENT = re.compile(r'event: (\w+)\ndata: ({.*?})\n\n')


def parse_sse_events(body):
    """List of (event_type, data) tuples found in an SSE body."""
    events = []
    for match in SSE_EVENT.finditer(body):
        events.append((match.group(1), json.loads(match.group(2))))
    return events


def assert_sse_event(body, event_type, **expected_data):
    """
    Assert that an SSE event with the given type and expected data exists in the body.
    Checks all occurrences of the event type.
    """
    for ev_type, data in parse_sse_events(body):
        if ev_type != event_type:
            continue
        if all(key in data and data[key] == value for key, value in expected_data.items()):
            return data

    assert False, f"No '{event_type}' event found with all expected data: {expected_data} in SSE body:\n{body}"


def assembled_tokens(body):
    """Concatenation of every token event's content."""
    return "".join(data.get("content", "") for ev_type, data in parse_sse_events(body) if ev_type == "token")
