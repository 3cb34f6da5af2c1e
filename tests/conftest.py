import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture(autouse=True)
def _clear_telemetry():
    """Keep the in-memory telemetry buffer from leaking between tests."""
    from src.appcoder.services import telemetry_sink

    telemetry_sink.clear_recent_events()
    yield
    telemetry_sink.clear_recent_events()
