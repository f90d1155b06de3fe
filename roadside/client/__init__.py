"""
Async Python client for the roadside dispatch API.

Usage::

    async with RoadsideClient("http://localhost:8000/api") as client:
        await client.login("driver@example.com", "secret123")
        request = await client.create_request(
            service_type="towing",
            location_address="123 Main St",
            vehicle_make="Toyota",
            vehicle_model="Camry",
        )
"""

from roadside.client.apiClient import ApiError, RoadsideClient, normalize_list
from roadside.client.poller import DashboardPoller
from roadside.client.session import ApiSession

__all__ = [
    "ApiError",
    "ApiSession",
    "DashboardPoller",
    "RoadsideClient",
    "normalize_list",
]
