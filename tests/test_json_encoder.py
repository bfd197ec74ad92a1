import json
from datetime import date, datetime, timezone

from soundwrapped_report.models.db import ActivityType
from soundwrapped_report.utils.json_encoder import json_dumps


def test_encodes_report_values():
    payload = {
        "at": datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        "day": date(2025, 1, 2),
        "type": ActivityType.PLAY,
        "genres": frozenset({"techno", "house"}),
    }

    assert json.loads(json_dumps(payload)) == {
        "at": "2025-01-02T03:04:05+00:00",
        "day": "2025-01-02",
        "type": "PLAY",
        "genres": ["house", "techno"],
    }
