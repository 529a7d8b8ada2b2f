"""Driver registry mapping destination names to driver factories."""

from typing import Any, Callable, Dict, List

from pushx.exceptions import DriverNotFoundError
from pushx.logging_config import logger

from .protocol import Driver

DriverFactory = Callable[[], Driver]


class DriverRegistry:
    """
    Registry of destination drivers.

    The registry holds a zero-argument factory per driver name and builds a
    fresh driver on every resolve, so no state is shared between runs.

    Example:
        registry = DriverRegistry()
        registry.register("local", LocalDriver)
        registry.register("http", HTTPDriver)

        driver = registry.resolve("http")
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._factories: Dict[str, DriverFactory] = {}

    def register(self, name: str, factory: DriverFactory) -> None:
        """
        Register a driver factory under a name.

        Args:
            name: Destination name, e.g. "aws-s3"
            factory: Zero-argument callable returning a new driver
        """
        if not name:
            raise ValueError("Driver name cannot be empty")
        self._factories[name] = factory
        logger.debug(f"Registered driver: {name}")

    def resolve(self, name: str) -> Driver:
        """
        Build a new driver instance for a name.

        Args:
            name: Destination name

        Returns:
            A fresh driver instance

        Raises:
            DriverNotFoundError: If name is empty or not registered
        """
        if not name:
            raise DriverNotFoundError("No driver specified", stage="resolve")
        factory = self._factories.get(name)
        if factory is None:
            raise DriverNotFoundError(
                f"Driver '{name}' not found. Available drivers: {self.names()}",
                stage="resolve",
            )
        return factory()

    def get_factory(self, name: str) -> DriverFactory:
        """Return the factory for a name without building a driver."""
        if name not in self._factories:
            raise DriverNotFoundError(f"Driver '{name}' not found", stage="resolve")
        return self._factories[name]

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def names(self) -> List[str]:
        """Sorted list of registered driver names."""
        return sorted(self._factories)

    def list_drivers(self) -> List[Dict[str, Any]]:
        """
        List registered drivers with their description.

        Returns:
            List of dicts with driver info
        """
        return [
            {
                "name": name,
                "description": getattr(factory, "description", ""),
            }
            for name, factory in sorted(self._factories.items())
        ]
