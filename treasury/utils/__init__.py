"""
Treasury utility modules.

- Logging (loguru, run-bound handles)
- Small helpers (case-insensitive mapping, engine enum names)
- Serialization of dataclass models to PascalCase JSON
"""

# Logger
from .logger import (
    base36_encode,
    bind_run_logger,
    configure_logging,
    generate_run_id,
    is_debug_enabled,
    logger,
)

# Helpers
from .helpers import (
    CaseInsensitiveDict,
    enum_suffix,
    file_stem,
    first_present,
    strip_extension,
)

# Serialization
from .serialization import (
    from_json_dict,
    serialize_to_primitives,
    to_json_dict,
    to_pascal_case,
)

__all__ = [
    # Logger
    "base36_encode",
    "bind_run_logger",
    "configure_logging",
    "generate_run_id",
    "is_debug_enabled",
    "logger",
    # Helpers
    "CaseInsensitiveDict",
    "enum_suffix",
    "file_stem",
    "first_present",
    "strip_extension",
    # Serialization
    "from_json_dict",
    "serialize_to_primitives",
    "to_json_dict",
    "to_pascal_case",
]
