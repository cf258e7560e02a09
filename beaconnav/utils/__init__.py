"""
Utility functions for the navigation core.

This module provides angle normalization, horizontal-plane geometry and the
logging setup shared across the codebase.
"""

from .angles import (
    normalize_angle,
    normalize_angle_array,
    angle_difference,
    clamp,
    safe_acos,
)
from .geometry import (
    as_vec2,
    as_vec3,
    bearing,
    centroid,
    cross_2d,
    heading_vector,
    horizontal,
    horizontal_distance,
    lift,
    rotate_2d,
    rotate_direction,
    rotation_matrix_2d,
    unit,
)
from .log import JsonFormatter, get_logger, setup_logging

__all__ = [
    'normalize_angle',
    'normalize_angle_array',
    'angle_difference',
    'clamp',
    'safe_acos',
    'as_vec2',
    'as_vec3',
    'bearing',
    'centroid',
    'cross_2d',
    'heading_vector',
    'horizontal',
    'horizontal_distance',
    'lift',
    'rotate_2d',
    'rotate_direction',
    'rotation_matrix_2d',
    'unit',
    'JsonFormatter',
    'get_logger',
    'setup_logging',
]
