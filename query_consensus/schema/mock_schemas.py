"""
Canned mapping trees used when no cluster is reachable.
"""

import copy
from typing import Any, Dict

LOGS_MAPPING = {
    "properties": {
        "@timestamp": {"type": "date"},
        "message": {"type": "text", "fields": {"keyword": {"type": "keyword", "ignore_above": 256}}},
        "log.level": {"type": "keyword"},
        "log.logger": {"type": "keyword"},
        "service.name": {"type": "keyword"},
        "service.version": {"type": "keyword"},
        "host.name": {"type": "keyword"},
        "host.ip": {"type": "ip"},
        "http.request.method": {"type": "keyword"},
        "http.request.body.content": {"type": "text"},
        "http.response.status_code": {"type": "integer"},
        "http.response.body.content": {"type": "text"},
        "event.duration": {"type": "long"},
        "user.id": {"type": "keyword"},
        "error": {
            "properties": {
                "message": {"type": "text"},
                "type": {"type": "keyword"},
                "stack_trace": {"type": "text"},
            }
        },
        "labels": {
            "properties": {
                "env": {"type": "keyword"},
                "version": {"type": "keyword"},
            }
        },
        "geo": {"properties": {"coordinates": {"type": "geo_point"}}},
    }
}

METRICS_MAPPING = {
    "properties": {
        "@timestamp": {"type": "date"},
        "host.name": {"type": "keyword"},
        "service.name": {"type": "keyword"},
        "metricset.name": {"type": "keyword"},
        "metricset.period": {"type": "integer"},
        "system.cpu": {
            "properties": {
                "total.pct": {"type": "float"},
                "user.pct": {"type": "float"},
                "system.pct": {"type": "float"},
                "cores": {"type": "integer"},
            }
        },
        "system.memory": {
            "properties": {
                "total": {"type": "long"},
                "used.bytes": {"type": "long"},
                "used.pct": {"type": "float"},
                "free": {"type": "long"},
            }
        },
        "system.network": {
            "properties": {
                "name": {"type": "keyword"},
                "in.bytes": {"type": "long"},
                "out.bytes": {"type": "long"},
            }
        },
    }
}

USERS_MAPPING = {
    "properties": {
        "id": {"type": "keyword"},
        "username": {"type": "keyword"},
        "email": {"type": "keyword"},
        "name": {
            "properties": {
                "first": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
                "last": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
            }
        },
        "created_at": {"type": "date"},
        "updated_at": {"type": "date"},
        "last_login": {"type": "date"},
        "profile": {
            "properties": {
                "bio": {"type": "text"},
                "company": {"type": "keyword"},
                "location": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
                "website": {"type": "keyword"},
            }
        },
        "stats": {
            "properties": {
                "followers": {"type": "integer"},
                "posts": {"type": "integer"},
                "reputation": {"type": "float"},
            }
        },
        "location": {"type": "geo_point"},
        "tags": {"type": "keyword"},
        "active": {"type": "boolean"},
    }
}

DEFAULT_MAPPING = {
    "properties": {
        "id": {"type": "keyword"},
        "name": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
        "description": {"type": "text"},
        "created_at": {"type": "date"},
        "updated_at": {"type": "date"},
        "type": {"type": "keyword"},
        "status": {"type": "keyword"},
        "tags": {"type": "keyword"},
        "category": {"type": "keyword"},
        "count": {"type": "integer"},
        "value": {"type": "float"},
        "enabled": {"type": "boolean"},
        "metadata": {
            "properties": {
                "version": {"type": "keyword"},
                "source": {"type": "keyword"},
            }
        },
    }
}


class MockMappingSource:
    """
    IMappingSource returning a canned tree chosen by index pattern.

    Patterns containing "logs", "metrics" or "users" get a matching
    tree; anything else gets a generic catalogue mapping.
    """

    def get_mapping(self, index_pattern: str) -> Dict[str, Any]:
        pattern = (index_pattern or "").lower()
        if "logs" in pattern:
            mapping = LOGS_MAPPING
        elif "metrics" in pattern:
            mapping = METRICS_MAPPING
        elif "users" in pattern:
            mapping = USERS_MAPPING
        else:
            mapping = DEFAULT_MAPPING
        return copy.deepcopy(mapping)
