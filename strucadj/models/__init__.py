"""Lumped structural models implementing the state provider protocol."""

from strucadj.models.elements import (
    Component,
    ElementRegistry,
    MaterialProperties,
    PanelElement,
    RodElement,
    HardeningSpringElement,
    default_registry,
)
from strucadj.models.assembler import Assembler, ModelDefinition
from strucadj.models.plate import initial_design, plate_definition, plate_model

__all__ = [
    "Component",
    "ElementRegistry",
    "MaterialProperties",
    "PanelElement",
    "RodElement",
    "HardeningSpringElement",
    "default_registry",
    "Assembler",
    "ModelDefinition",
    "initial_design",
    "plate_definition",
    "plate_model",
]
