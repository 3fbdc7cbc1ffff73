"""Demo model: a clamped plate strip under gravity with an initial velocity."""

from typing import Optional
import numpy as np

from strucadj.models.assembler import Assembler, ModelDefinition
from strucadj.models.elements import Component, ElementRegistry, MaterialProperties


def plate_definition(
    num_panels: int = 4,
    span: float = 1.0,
    width: float = 1.0,
    tip_spring: bool = False,
    shared_thickness: bool = False,
    t_init: float = 0.0,
) -> ModelDefinition:
    """
    Strip of CQUAD panels clamped at node 0.

    Args:
        num_panels: Number of panels along the span
        span: Total length (m)
        width: Strip width (m)
        tip_spring: Ground the tip through a hardening CBUSH spring
        shared_thickness: One design variable for all panels instead of one each
        t_init: Start time of the integration

    Returns:
        Model definition with gravity -9.81 and initial velocity 0.25
    """
    length = span / num_panels
    components = [
        Component(
            descriptor="CQUAD",
            nodes=(i, i + 1),
            dv_index=0 if shared_thickness else i,
            length=length,
            width=width,
        )
        for i in range(num_panels)
    ]
    num_nodes = num_panels + 1
    num_dvs = 1 if shared_thickness else num_panels

    if tip_spring:
        ground = num_nodes
        num_nodes += 1
        components.append(
            Component(
                descriptor="CBUSH",
                nodes=(ground, num_panels),
                dv_index=num_dvs,
                options={"k_ref": 1.0e6, "t_ref": 0.05, "k3": 1.0e12},
            )
        )
        num_dvs += 1
        fixed = (0, ground)
    else:
        fixed = (0,)

    return ModelDefinition(
        num_nodes=num_nodes,
        components=components,
        fixed_nodes=fixed,
        rayleigh=(0.0, 1.0e-5),
        gravity=-9.81,
        initial_velocity=0.25,
        num_design_vars=num_dvs,
        t_init=t_init,
    )


def plate_model(
    num_panels: int = 4,
    registry: Optional[ElementRegistry] = None,
    material: Optional[MaterialProperties] = None,
    **kwargs,
) -> Assembler:
    """Build the plate strip assembler."""
    return Assembler(plate_definition(num_panels, **kwargs), registry, material)


def initial_design(assembler: Assembler, thickness: float = 0.03) -> np.ndarray:
    """Uniform starting design vector."""
    return np.full(assembler.num_design_vars, thickness)
