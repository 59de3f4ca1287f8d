"""Operations over AliasedTables: named transforms and compensation."""

from .transforms import (
    BaseTransform,
    Linear,
    Log,
    Exp,
    Arcsinh,
    SinhInverse,
    Scale,
    TransformRegistry,
    apply_transforms,
)
from .compensation import compensate, get_spillover, parse_spillover

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
    'compensate',
    'get_spillover',
    'parse_spillover',
]
