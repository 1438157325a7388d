"""Expert registry and directory listing."""

from typing import Any, Dict, List, Optional, Type, TYPE_CHECKING

if TYPE_CHECKING:
    from ...config.ruleset import RuleSet
    from .base import BaseExpert


class ExpertRegistry:
    """Registry of expert classes, keyed by expert name.

    Provides:
    - Decorator-based registration: @ExpertRegistry.register
    - Listing of static metadata
    - Instantiation by name
    """

    _experts: Dict[str, Type["BaseExpert"]] = {}

    @classmethod
    def register(cls, expert_class: Type["BaseExpert"]) -> Type["BaseExpert"]:
        """Register an expert class (validates its metadata).

        Raises
        ------
        ConfigurationError
            If the class is missing listing metadata
        """
        expert_class._validate_metadata()
        cls._experts[expert_class.name] = expert_class
        return expert_class

    @classmethod
    def get_expert_class(cls, name: str) -> Optional[Type["BaseExpert"]]:
        """Get an expert class by name."""
        return cls._experts.get(name)

    @classmethod
    def list_names(cls) -> List[str]:
        """Registered expert names, in registration order."""
        return list(cls._experts.keys())

    @classmethod
    def create(
        cls,
        name: str,
        rule_set: Optional["RuleSet"] = None,
        **kwargs,
    ) -> "BaseExpert":
        """Instantiate an expert by name.

        Raises
        ------
        ValueError
            If no expert is registered under name
        """
        expert_class = cls._experts.get(name)
        if expert_class is None:
            raise ValueError(f"Unknown expert: '{name}'. Available: {cls.list_names()}")
        return expert_class(rule_set=rule_set, **kwargs)


def get_available_experts() -> List[Dict[str, Any]]:
    """List registered experts with name, version, description and capabilities.

    Pure read of class metadata; no expert is instantiated.
    """
    return [expert_class.describe() for expert_class in ExpertRegistry._experts.values()]
