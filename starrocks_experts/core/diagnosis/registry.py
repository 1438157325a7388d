"""Dimension registry for per-domain dimension discovery.

Provides decorator-based registration of dimension classes, grouped by
domain and kept in registration order.
"""

from typing import Dict, List, Optional, Type, TYPE_CHECKING

if TYPE_CHECKING:
    from .base import BaseDimension
    from ...config.ruleset import RuleSet


class DimensionRegistry:
    """Registry for diagnosis dimensions.

    Provides:
    - Decorator-based registration: @DimensionRegistry.register
    - Lookup by domain (registration order is evaluation order)
    - Instantiation with a rule set
    """

    _dimensions: Dict[str, Dict[str, Type["BaseDimension"]]] = {}

    @classmethod
    def register(cls, dimension_class: Type["BaseDimension"]) -> Type["BaseDimension"]:
        """Register a dimension class.

        Use as decorator:
            @DimensionRegistry.register
            class DiskUsageDimension(BaseDimension):
                dimension_id = "disk_usage"
                domain = "storage"
                ...
        """
        cls._dimensions.setdefault(dimension_class.domain, {})[
            dimension_class.dimension_id
        ] = dimension_class
        return dimension_class

    @classmethod
    def get_dimension(cls, domain: str, dimension_id: str) -> Optional[Type["BaseDimension"]]:
        """Get a dimension class by domain and ID."""
        return cls._dimensions.get(domain, {}).get(dimension_id)

    @classmethod
    def for_domain(cls, domain: str) -> List[Type["BaseDimension"]]:
        """Get the dimension classes of a domain, in registration order."""
        return list(cls._dimensions.get(domain, {}).values())

    @classmethod
    def list_domains(cls) -> List[str]:
        """Get the domains with at least one registered dimension."""
        return sorted(cls._dimensions.keys())

    @classmethod
    def instantiate_all(
        cls,
        domain: str,
        rule_set: "RuleSet",
        skip_dimensions: Optional[List[str]] = None,
    ) -> List["BaseDimension"]:
        """Instantiate the dimensions of a domain.

        Parameters
        ----------
        domain : str
            Domain name
        rule_set : RuleSet
            Rule set handed to every dimension
        skip_dimensions : List[str], optional
            Dimension IDs to leave out

        Returns
        -------
        List[BaseDimension]
            Instantiated dimensions
        """
        skip_dimensions = skip_dimensions or []
        return [
            dimension_class(rule_set)
            for dimension_id, dimension_class in cls._dimensions.get(domain, {}).items()
            if dimension_id not in skip_dimensions
        ]

    @classmethod
    def summary(cls) -> Dict[str, List[str]]:
        """Get dimension IDs by domain."""
        return {domain: list(dims.keys()) for domain, dims in sorted(cls._dimensions.items())}
