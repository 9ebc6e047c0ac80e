"""Generator configuration"""

from dataclasses import dataclass, replace

from .types import InterfaceModel


@dataclass(frozen=True)
class Config:
    """Options controlling the emitted module.

    Only details that do not affect the native component can be configured
    here; everything crossing the boundary is determined by the model.
    """
    module_name: str
    library_name: str
    header: str = "DO NOT EDIT - Generated from interface definition"

    @classmethod
    def from_model(cls, model: InterfaceModel, **overrides) -> "Config":
        config = cls(
            module_name=model.namespace,
            library_name=f"uniffi_{model.namespace}",
        )
        overrides = {key: value for key, value in overrides.items() if value}
        return replace(config, **overrides)
