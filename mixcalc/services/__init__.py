"""
MIXCALC Service Layer: MixService ABC and ServiceRegistry.

The property solver is a MixService registered with the ServiceRegistry
at app startup. Each service owns its API endpoints, its input
validation and its result format; the registry lists services and hands
them to the API blueprint for route mounting.

Classes:
    MixService      - Abstract base class for calculator services
    ServiceRegistry - Ordered container of registered services

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

from abc import ABC, abstractmethod


class MixService(ABC):
    """
    Abstract base class for a MIXCALC service.

    Class Attributes
    ----------------
    id : str
        Unique service identifier (e.g. "solver").
    name : str
        Human-readable display name.
    description : str
        One-liner for the service listing.
    category : str
        Grouping for the service listing (e.g. "calculator").
    route : str
        Primary API route.
    """

    id = ""
    name = ""
    description = ""
    category = ""
    route = ""

    @abstractmethod
    def validate(self, config):
        """
        Validate raw input and return a normalized request.

        Raises
        ------
        ValueError
            If the payload is unusable.
        """

    @abstractmethod
    def compute(self, config):
        """Run the service computation on a request from validate()."""

    @abstractmethod
    def register_routes(self, blueprint):
        """Mount the service's API endpoints onto a Flask blueprint."""

    def metadata(self):
        """Service info for the /api/services listing."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "route": self.route,
        }


class ServiceRegistry:
    """Registered MixService instances, in registration order."""

    def __init__(self):
        self._services = {}

    def register(self, service):
        """
        Register a service instance.

        Raises
        ------
        ValueError
            If a service with the same id is already registered.
        """
        if service.id in self._services:
            raise ValueError(
                "Service '{}' is already registered".format(service.id)
            )
        self._services[service.id] = service

    def __iter__(self):
        return iter(self._services.values())

    def list_all(self):
        """Metadata for all registered services, in registration order."""
        return [s.metadata() for s in self]
