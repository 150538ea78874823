# SPDX-License-Identifier: Apache-2.0

"""
Service catalog domain logic: category summaries, search and popularity.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

from ..models.enums import ServiceCategory

CATEGORY_DISPLAY_NAMES = {
    ServiceCategory.CERTIFICATE.value: 'Certificates',
    ServiceCategory.LICENSE.value: 'Licenses',
    ServiceCategory.WELFARE.value: 'Welfare Schemes',
    ServiceCategory.OTHER.value: 'Other Services'
}

POPULAR_SERVICES_LIMIT = 5
DEFAULT_PROCESSING_TIME = '7-10 days'


def get_category_display_name(category: str) -> str:
    """Human-readable category label; unknown categories are shown as is."""
    return CATEGORY_DISPLAY_NAMES.get(category, category)


def summarize_categories(services: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Categories present among the services, with counts, in first-seen order."""
    counts = Counter(service.get('category') for service in services)
    return [
        {'name': name, 'count': count, 'displayName': get_category_display_name(name)}
        for name, count in counts.items()
    ]


def search_services(services: List[Dict[str, Any]], term: Optional[str]) -> List[Dict[str, Any]]:
    """Case-insensitive substring search over service name and description."""
    if not term:
        return list(services)

    needle = term.lower()
    return [
        service for service in services
        if needle in str(service.get('name', '')).lower()
        or needle in str(service.get('description', '')).lower()
    ]


def compute_service_statistics(
    services: List[Dict[str, Any]],
    applications: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Build catalog statistics.

    Args:
        services: Active service documents
        applications: All application documents

    Returns:
        Dictionary with totalServices, totalApplications, categoryCounts and
        the five most applied-for services
    """
    names = {service.get('id'): service.get('name') for service in services}
    application_counts = Counter(app.get('serviceId') for app in applications)

    popular = sorted(application_counts.items(), key=lambda item: item[1], reverse=True)
    return {
        'totalServices': len(services),
        'totalApplications': len(applications),
        'categoryCounts': dict(Counter(service.get('category') for service in services)),
        'popularServices': [
            {
                'serviceId': service_id,
                'applicationCount': count,
                'serviceName': names.get(service_id) or 'Unknown'
            }
            for service_id, count in popular[:POPULAR_SERVICES_LIMIT]
        ]
    }
