"""Loading of JSON resources shipped inside the package.

A bundled resource is part of the build, so every failure here is a
packaging defect. Both error types are meant to stop startup.
"""

from importlib.resources import files
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from quickfix.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RESOURCE_PACKAGE = "quickfix.resources"


class BundleResourceError(RuntimeError):
    """Raised when a bundled resource cannot be located or read."""


class BundleDecodeError(RuntimeError):
    """Raised when a bundled resource does not decode into the requested type."""


def _describe_validation_error(file: str, error: ValidationError) -> str:
    """Build a message naming the kind of decode failure.

    Args:
        file: Resource file name
        error: Validation error raised by pydantic

    Returns:
        Human-readable failure message
    """
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    kind = first["type"]

    if kind == "json_invalid":
        return f"Failed to decode {file} from bundle because it appears to be invalid JSON."
    if kind == "missing":
        return f"Failed to decode {file} from bundle due to missing key '{location}' - {first['msg']}"
    if first.get("input", ...) is None:
        return f"Failed to decode {file} from bundle due to missing value for '{location}' - {first['msg']}"
    return f"Failed to decode {file} from bundle due to type mismatch at '{location}' - {first['msg']}"


def load_bundled(
    file: str,
    as_type: type[T] | Any,
    resource_root: Traversable | Path | None = None,
) -> T:
    """Decode a JSON resource shipped with the package.

    Args:
        file: Resource file name, relative to the resource root
        as_type: Type to validate the decoded JSON against (e.g. list[Award])
        resource_root: Directory to read from (the quickfix.resources package if None)

    Returns:
        Validated value of the requested type

    Raises:
        BundleResourceError: If the file is absent or unreadable
        BundleDecodeError: If the content is not valid for the requested type
    """
    root = resource_root if resource_root is not None else files(RESOURCE_PACKAGE)
    resource = root.joinpath(file)

    if not resource.is_file():
        logger.critical("bundle_resource_missing", file=file)
        raise BundleResourceError(f"Failed to locate {file} in bundle.")

    try:
        data = resource.read_bytes()
    except OSError as e:
        logger.critical("bundle_resource_unreadable", file=file, error=str(e))
        raise BundleResourceError(f"Failed to load {file} from bundle.") from e

    try:
        return TypeAdapter(as_type).validate_json(data)
    except ValidationError as e:
        message = _describe_validation_error(file, e)
        logger.critical("bundle_decode_failed", file=file, error=message)
        raise BundleDecodeError(message) from e
