"""Custom JSON encoding utilities"""
import enum
import json
from datetime import date, datetime


class ReportEncoder(json.JSONEncoder):
    """JSON encoder for datetimes, enums and sets found in report data and log payloads"""
    def default(self, obj):
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, enum.Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        return super().default(obj)


def json_dumps(obj, indent=None):
    """Helper function to dump JSON with datetime handling"""
    return json.dumps(obj, cls=ReportEncoder, indent=indent)
