"""Element-wise channel transforms and the registry that builds them by name.

Transforms are plain callables over numpy arrays, so they plug straight into
AliasedTable.apply_transform():

    >>> table.apply_transform(['FL1-A', 'FL2-A'], Arcsinh(cofactor=150))
"""

import inspect
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Mapping, Union

import numpy as np

from ..core.aliased_table import AliasedTable
from ..core.config_manager import ConfigManager

logger = logging.getLogger(__name__)


class BaseTransform(ABC):
    """Base class for element-wise transforms.

    Subclasses are dataclasses holding their parameters and implement
    __call__ over a numpy array plus inverse().
    """

    @abstractmethod
    def __call__(self, values: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def inverse(self) -> 'BaseTransform':
        """Return the transform undoing this one."""
        pass


@dataclass
class Linear(BaseTransform):
    """values * slope + intercept."""
    slope: float = 1.0
    intercept: float = 0.0

    def __post_init__(self):
        if self.slope == 0:
            raise ValueError("slope must be non-zero")

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(values) * self.slope + self.intercept

    def inverse(self) -> 'Linear':
        return Linear(slope=1.0 / self.slope, intercept=-self.intercept / self.slope)


@dataclass
class Log(BaseTransform):
    """Logarithm in the given base; values below floor are clipped to floor."""
    base: float = 10.0
    floor: float = 1.0

    def __post_init__(self):
        if self.base <= 0 or self.base == 1:
            raise ValueError(f"base must be positive and != 1, got {self.base}")
        if self.floor <= 0:
            raise ValueError(f"floor must be positive, got {self.floor}")

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return np.log(np.maximum(np.asarray(values), self.floor)) / np.log(self.base)

    def inverse(self) -> 'Exp':
        return Exp(base=self.base)


@dataclass
class Exp(BaseTransform):
    """base ** values (inverse of Log, up to the floor clipping)."""
    base: float = 10.0

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return np.power(self.base, np.asarray(values))

    def inverse(self) -> Log:
        return Log(base=self.base, floor=np.finfo(float).tiny)


@dataclass
class Arcsinh(BaseTransform):
    """arcsinh(values / cofactor), the usual variance-stabilising transform."""
    cofactor: float = 150.0

    def __post_init__(self):
        if self.cofactor <= 0:
            raise ValueError(f"cofactor must be positive, got {self.cofactor}")

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return np.arcsinh(np.asarray(values) / self.cofactor)

    def inverse(self) -> 'SinhInverse':
        return SinhInverse(cofactor=self.cofactor)


@dataclass
class SinhInverse(BaseTransform):
    """sinh(values) * cofactor (inverse of Arcsinh)."""
    cofactor: float = 150.0

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return np.sinh(np.asarray(values)) * self.cofactor

    def inverse(self) -> Arcsinh:
        return Arcsinh(cofactor=self.cofactor)


@dataclass
class Scale(BaseTransform):
    """Map [lower, upper] linearly onto [0, 1] (values outside are not clipped)."""
    lower: float = 0.0
    upper: float = 262144.0

    def __post_init__(self):
        if self.upper == self.lower:
            raise ValueError("upper and lower bounds must differ")

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return (np.asarray(values) - self.lower) / (self.upper - self.lower)

    def inverse(self) -> Linear:
        return Linear(slope=self.upper - self.lower, intercept=self.lower)


__all__ = [
    'BaseTransform',
    'Linear',
    'Log',
    'Exp',
    'Arcsinh',
    'SinhInverse',
    'Scale',
    'TransformRegistry',
    'apply_transforms',
]


def _camel_to_snake(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


class TransformRegistry:
    """Registry building transforms by snake_case name with config defaults.

    Parameter defaults come from transforms.yaml (keyed by the snake_case
    name) and can be overridden per call.

    Example:
        >>> registry = TransformRegistry(ConfigManager('config'))
        >>> registry.create('arcsinh')             # cofactor from transforms.yaml
        >>> registry.create('arcsinh', cofactor=5)  # explicit override
        >>> registry.list_transforms()
        ['arcsinh', 'exp', 'linear', 'log', 'scale', 'sinh_inverse']
    """

    def __init__(self, config_manager: ConfigManager = None):
        self._config_manager = config_manager
        self._transforms: Dict[str, type] = {}
        self._discover_transforms()

    def _discover_transforms(self):
        """Register every concrete BaseTransform exported from this module."""
        for class_name in __all__:
            transform_class = globals().get(class_name)
            if not (inspect.isclass(transform_class)
                    and issubclass(transform_class, BaseTransform)
                    and transform_class is not BaseTransform):
                continue
            self._transforms[_camel_to_snake(class_name)] = transform_class

        logger.debug(f"Registered {len(self._transforms)} transforms")

    def list_transforms(self):
        """List registered transform names."""
        return sorted(self._transforms)

    def create(self, name: str, **params) -> BaseTransform:
        """Instantiate a transform by name.

        Raises:
            KeyError: If no transform is registered under name
        """
        if name not in self._transforms:
            raise KeyError(
                f"Transform '{name}' not found. Available transforms: {self.list_transforms()}"
            )
        defaults = {}
        if self._config_manager is not None:
            defaults = self._config_manager.get_transform_config(name)
        defaults.update(params)
        return self._transforms[name](**defaults)


def apply_transforms(
    table: AliasedTable,
    transforms: Mapping[str, Union[BaseTransform, str]],
    registry: TransformRegistry = None
) -> AliasedTable:
    """Apply one transform per channel in place (flowCore transformList style).

    Args:
        table: Table to transform (its store is mutated)
        transforms: channel name (or marker label) -> transform or registered name
        registry: Used to build transforms given by name

    Returns:
        The same table, for chaining

    Raises:
        KeyError: If a channel is not in the table or a transform name is
            not registered (no channel is transformed)
    """
    registry = registry or TransformRegistry()

    # Resolve everything first so a bad channel or name leaves the table untouched
    resolved = []
    for channel, transform in transforms.items():
        if isinstance(transform, str):
            transform = registry.create(transform)
        resolved.append((table.resolve_columns(channel)[0], transform))

    for channel, transform in resolved:
        table.apply_transform(channel, transform)
    return table
