# SPDX-License-Identifier: Apache-2.0

"""
Aggregate statistics over persisted event log entries.
"""

from collections import Counter
from datetime import datetime, timezone
from numbers import Number
from typing import Any, Dict, List, Optional

from ..models.enums import LogLevel

TOP_ERRORS_LIMIT = 10
SLOWEST_OPERATIONS_LIMIT = 10


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_duration(value: Any) -> bool:
    """Durations are real numbers; booleans do not count."""
    return isinstance(value, Number) and not isinstance(value, bool)


def compute_log_statistics(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Compute level, hour, user, error and performance statistics.

    Args:
        entries: Log entry documents, most recent first

    Returns:
        Dictionary with total, byLevel, byHour (UTC), byUser, errorRate,
        topErrors and performance
    """
    by_level = Counter()
    by_hour = Counter()
    by_user = Counter()
    error_messages = Counter()
    performance_entries = []

    for entry in entries:
        level = entry.get('level')
        by_level[level] += 1

        timestamp = parse_timestamp(entry.get('timestamp'))
        if timestamp is not None:
            by_hour[timestamp.hour] += 1

        context = entry.get('context') or {}
        if context.get('userId'):
            by_user[context['userId']] += 1

        if level == LogLevel.ERROR.value:
            error_messages[entry.get('message')] += 1

        data = entry.get('data')
        if level == LogLevel.PERFORMANCE.value and isinstance(data, dict) and is_duration(data.get('duration')):
            performance_entries.append({
                'operation': data.get('operation'),
                'duration': data['duration']
            })

    total = len(entries)

    # sorted() is stable, so equal counts keep first-seen order
    top_errors = sorted(error_messages.items(), key=lambda item: item[1], reverse=True)[:TOP_ERRORS_LIMIT]

    performance = {'averageResponseTime': 0, 'slowestOperations': []}
    if performance_entries:
        performance['averageResponseTime'] = (
            sum(item['duration'] for item in performance_entries) / len(performance_entries)
        )
        performance['slowestOperations'] = sorted(
            performance_entries, key=lambda item: item['duration'], reverse=True
        )[:SLOWEST_OPERATIONS_LIMIT]

    return {
        'total': total,
        'byLevel': dict(by_level),
        'byHour': dict(by_hour),
        'byUser': dict(by_user),
        'errorRate': by_level[LogLevel.ERROR.value] / total if total else 0,
        'topErrors': [{'message': message, 'count': count} for message, count in top_errors],
        'performance': performance
    }
