import json
import os
import threading
import time
from collections import deque
from typing import List

from print_agent import env

_write_lock = threading.Lock()


def audit(event: str, **payload):
    """Append one JSON line per handshake / print event."""
    path = env.AUDIT_LOG_PATH
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    record = {
        "ts": time.time(),
        "agent_id": env.AGENT_ID,
        "event": event,
        "payload": payload,
    }
    line = json.dumps(record, ensure_ascii=False)
    with _write_lock:
        with open(path, "a", encoding="utf-8") as f:
            f.write(line + "\n")


def recent_events(limit: int = 50) -> List[dict]:
    path = env.AUDIT_LOG_PATH
    if not os.path.exists(path):
        return []
    with open(path, encoding="utf-8") as f:
        tail = deque(f, maxlen=limit)
    return [json.loads(line) for line in tail if line.strip()]
