"""
Two-node lumped structural elements and the descriptor registry.

Each element couples one degree of freedom at each of its two nodes and
owns one design variable (its thickness). Element properties are written
with plain arithmetic so they accept complex thickness values.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterialProperties:
    """Isotropic material for all elements in a model."""
    rho: float = 2500.0         # density, kg/m^3
    E: float = 70e9             # elastic modulus, Pa
    nu: float = 0.3             # poisson's ratio
    kcorr: float = 5.0 / 6.0    # shear correction factor

    @property
    def G(self) -> float:
        """Shear modulus."""
        return self.E / (2.0 * (1.0 + self.nu))


@dataclass
class Component:
    """A model entity to be turned into an element by its descriptor."""
    descriptor: str
    nodes: tuple[int, int]
    dv_index: int
    length: float = 0.25
    width: float = 1.0
    min_thickness: float = 0.01
    max_thickness: float = 0.1
    options: dict[str, float] = field(default_factory=dict)


class Element(ABC):
    """Lumped two-node element with a thickness design variable."""

    def __init__(self, component: Component, material: MaterialProperties):
        self.nodes = component.nodes
        self.dv_index = component.dv_index
        self.length = component.length
        self.width = component.width
        self.min_thickness = component.min_thickness
        self.max_thickness = component.max_thickness
        self.material = material

    @abstractmethod
    def stiffness(self, t: Any) -> Any:
        """Linear stiffness k(t)."""
        ...

    @abstractmethod
    def stiffness_derivative(self, t: Any) -> Any:
        """dk/dt."""
        ...

    def mass(self, t: Any) -> Any:
        """Total element mass, lumped half to each node."""
        return self.material.rho * t * self.width * self.length

    def mass_derivative(self, t: Any) -> Any:
        return self.material.rho * self.width * self.length

    def nonlinear_force(self, delta: Any) -> Any:
        """Extra restoring force for elongation delta (beyond k delta)."""
        return 0.0 * delta

    def nonlinear_stiffness(self, delta: Any) -> Any:
        """d(nonlinear_force)/d(delta)."""
        return 0.0 * delta

    def __repr__(self) -> str:
        return f"{type(self).__name__}(nodes={self.nodes}, dv={self.dv_index})"


class RodElement(Element):
    """Axial rod: k = E t w / L."""

    def stiffness(self, t):
        return self.material.E * t * self.width / self.length

    def stiffness_derivative(self, t):
        return self.material.E * self.width / self.length


class PanelElement(Element):
    """
    Transverse plate strip with bending and transverse shear in series.

    k_b = E w t^3 / ((1 - nu^2) L^3), k_s = kcorr G w t / L,
    k = k_b k_s / (k_b + k_s).
    """

    def _parts(self, t):
        mat = self.material
        kb = mat.E * self.width * t**3 / ((1.0 - mat.nu**2) * self.length**3)
        ks = mat.kcorr * mat.G * self.width * t / self.length
        return kb, ks

    def stiffness(self, t):
        kb, ks = self._parts(t)
        return kb * ks / (kb + ks)

    def stiffness_derivative(self, t):
        kb, ks = self._parts(t)
        dkb, dks = 3.0 * kb / t, ks / t
        return (dkb * ks**2 + dks * kb**2) / (kb + ks) ** 2


class HardeningSpringElement(Element):
    """
    Spring with a cubic hardening term: F = k_ref (t / t_ref) delta + k3 delta^3.

    Massless; the cubic term makes the step equations nonlinear.
    """

    def __init__(self, component: Component, material: MaterialProperties):
        super().__init__(component, material)
        self.k_ref = component.options.get("k_ref", 1.0e6)
        self.t_ref = component.options.get("t_ref", 0.05)
        self.k3 = component.options.get("k3", 1.0e12)

    def stiffness(self, t):
        return self.k_ref * t / self.t_ref

    def stiffness_derivative(self, t):
        return self.k_ref / self.t_ref

    def mass(self, t):
        return 0.0 * t

    def mass_derivative(self, t):
        return 0.0

    def nonlinear_force(self, delta):
        return self.k3 * delta**3

    def nonlinear_stiffness(self, delta):
        return 3.0 * self.k3 * delta**2


ElementBuilder = Callable[[Component, MaterialProperties], Element]


class ElementRegistry:
    """Maps element descriptors to construction closures."""

    def __init__(self) -> None:
        self._builders: dict[str, ElementBuilder] = {}

    def register(self, descriptor: str, builder: ElementBuilder) -> None:
        self._builders[descriptor.upper()] = builder

    @property
    def descriptors(self) -> list[str]:
        return sorted(self._builders)

    def build(
        self, index: int, component: Component, material: MaterialProperties
    ) -> Optional[Element]:
        """
        Construct the element for a component.

        Unknown descriptors are reported as a warning and yield None; the
        caller decides whether a missing element is fatal.
        """
        builder = self._builders.get(component.descriptor.upper())
        if builder is None:
            logger.warning(
                "Unsupported element %s in component %d", component.descriptor, index
            )
            return None
        return builder(component, material)


def default_registry() -> ElementRegistry:
    registry = ElementRegistry()
    registry.register("CROD", RodElement)
    registry.register("CQUAD", PanelElement)
    registry.register("CBUSH", HardeningSpringElement)
    return registry
