import json
from datetime import datetime
from bson import ObjectId

class JSONEncoder(json.JSONEncoder):
    """json encoder that understands Mongo documents (ObjectId, datetime)."""

    def default(self, o):
        if isinstance(o, ObjectId):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)
