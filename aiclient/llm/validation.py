"""Reusable parameter checks shared by the per-provider rule sets.

Every check raises ``AIError`` of kind ``VALIDATION`` with the offending
parameter, its value, the requirement and (where applicable) the valid values.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from aiclient.llm.errors import AIError
from aiclient.llm.filesystem import Filesystem, PathLike, extension_of

MB = 1024 * 1024


def check_choice(
    parameter: str,
    value: Any,
    allowed: Iterable[Any],
    *,
    provider: str,
    requirement: Optional[str] = None,
) -> Any:
    """Ensure ``value`` is one of ``allowed``."""
    allowed_list = list(allowed)
    if value in allowed_list:
        return value
    text = requirement or f"Allowed values: {', '.join(str(v) for v in allowed_list)}"
    raise AIError.invalid_parameter(parameter, value, text, provider=provider, valid_values=allowed_list)


def check_range(
    parameter: str,
    value: Any,
    minimum: float,
    maximum: float,
    *,
    provider: str,
    integer: bool = False,
    context: str = "",
) -> Any:
    """Ensure a number lies within ``[minimum, maximum]``."""
    kind = "an integer" if integer else "a number"
    requirement = f"Must be {kind} between {_num(minimum)} and {_num(maximum)}{context}."
    if isinstance(value, bool):
        raise AIError.invalid_parameter(parameter, value, requirement, provider=provider)
    if integer and not isinstance(value, int):
        raise AIError.invalid_parameter(parameter, value, requirement, provider=provider)
    if not isinstance(value, (int, float)):
        raise AIError.invalid_parameter(parameter, value, requirement, provider=provider)
    if value < minimum or value > maximum:
        raise AIError.invalid_parameter(parameter, value, requirement, provider=provider)
    return value


def _num(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def check_text(parameter: str, value: Any, *, provider: str, max_length: Optional[int] = None) -> str:
    """Ensure a non-empty string, optionally bounded in length."""
    if not isinstance(value, str) or not value.strip():
        raise AIError.invalid_parameter(parameter, value, "Must be a non-empty string.", provider=provider)
    if max_length is not None and len(value) > max_length:
        raise AIError.invalid_parameter(
            parameter,
            f"{value[:40]}... ({len(value)} characters)",
            f"Must not exceed {max_length} characters.",
            provider=provider,
        )
    return value


def check_bool(parameter: str, value: Any, *, provider: str) -> bool:
    if not isinstance(value, bool):
        raise AIError.invalid_parameter(parameter, value, "Must be a boolean.", provider=provider)
    return value


def check_string_list(parameter: str, value: Any, *, provider: str, max_items: Optional[int] = None) -> list:
    """Accept one string or a non-empty list of strings."""
    items = [value] if isinstance(value, str) else value
    if not isinstance(items, (list, tuple)) or not items or not all(isinstance(i, str) for i in items):
        raise AIError.invalid_parameter(
            parameter, value, "Must be a string or a non-empty list of strings.", provider=provider
        )
    if max_items is not None and len(items) > max_items:
        raise AIError.invalid_parameter(
            parameter, f"{len(items)} items", f"At most {max_items} items are allowed.", provider=provider
        )
    return list(items)


def require_pair(
    parameter: str,
    value: Any,
    other: str,
    options: Mapping[str, Any],
    *,
    provider: str,
    requirement: Optional[str] = None,
) -> None:
    """``parameter`` is only accepted when ``other`` is present and truthy."""
    if not options.get(other):
        raise AIError.invalid_parameter(
            parameter,
            value,
            requirement or f"Requires '{other}' to be set.",
            provider=provider,
        )


def reject_for_model(parameter: str, value: Any, model: str, allowed_models: Iterable[str], *, provider: str) -> None:
    """``parameter`` is only accepted on ``allowed_models``."""
    allowed = sorted(allowed_models)
    if model not in allowed:
        raise AIError.invalid_parameter(
            parameter,
            value,
            f"Only supported by {', '.join(allowed)} (got model '{model}').",
            provider=provider,
        )


def check_file(
    path: PathLike,
    fs: Filesystem,
    *,
    provider: str,
    allowed_extensions: Iterable[str],
    max_bytes: int,
) -> str:
    """Existence, extension allow-list and byte ceiling; returns the extension."""
    if not isinstance(path, (str, bytes)) and not hasattr(path, "__fspath__"):
        raise AIError.invalid_parameter("file", path, "Must be a file path.", provider=provider)
    if not fs.exists(path):
        raise AIError.file_not_found(str(path), provider=provider)
    ext = extension_of(path)
    allowed = set(allowed_extensions)
    if ext not in allowed:
        raise AIError.invalid_file_format(str(path), ext, allowed, provider=provider)
    size = fs.size(path)
    if size > max_bytes:
        raise AIError.file_too_large(str(path), size, max_bytes, provider=provider)
    return ext


def image_dimensions(path: PathLike, fs: Filesystem, *, provider: str) -> Tuple[int, int]:
    dims = fs.image_dimensions(path)
    if dims is None:
        raise AIError.invalid_parameter("image", str(path), "File must be a readable image.", provider=provider)
    return dims


def check_square(path: PathLike, fs: Filesystem, *, provider: str, parameter: str = "image") -> Tuple[int, int]:
    width, height = image_dimensions(path, fs, provider=provider)
    if width != height:
        raise AIError.invalid_parameter(
            parameter,
            f"{path} ({width}x{height})",
            "Image must be square.",
            provider=provider,
        )
    return width, height


def check_same_dimensions(
    image: PathLike, mask: PathLike, fs: Filesystem, *, provider: str
) -> None:
    image_dims = image_dimensions(image, fs, provider=provider)
    mask_dims = image_dimensions(mask, fs, provider=provider)
    if image_dims != mask_dims:
        raise AIError.invalid_parameter(
            "mask",
            f"{mask} ({mask_dims[0]}x{mask_dims[1]})",
            f"Mask must have the same dimensions as the image ({image_dims[0]}x{image_dims[1]}).",
            provider=provider,
        )


def check_messages(
    messages: Any,
    *,
    provider: str,
    roles: Sequence[str],
) -> list:
    """Non-empty list of role/content mappings.

    An entry may omit ``content`` when it carries a tool-call marker.
    """
    if not isinstance(messages, (list, tuple)) or not messages:
        raise AIError.validation(
            "Messages must be a non-empty list of message objects.",
            provider=provider,
            parameter="messages",
            invalid_value=messages,
            requirement="Provide at least one message.",
            validation_type="invalid_messages",
        )
    for index, message in enumerate(messages):
        if not isinstance(message, Mapping):
            raise AIError.validation(
                f"Message at index {index} must be an object with 'role' and 'content'.",
                provider=provider,
                parameter=f"messages[{index}]",
                invalid_value=message,
                validation_type="invalid_messages",
            )
        role = message.get("role")
        if role not in roles:
            raise AIError.validation(
                f"Message at index {index} has invalid role '{role}'. Valid roles: {', '.join(roles)}",
                provider=provider,
                parameter=f"messages[{index}].role",
                invalid_value=role,
                valid_values=roles,
                validation_type="invalid_messages",
            )
        has_tool_marker = bool(message.get("tool_calls") or message.get("function_call"))
        if message.get("content") in (None, "", []) and not has_tool_marker:
            raise AIError.validation(
                f"Message at index {index} must have non-empty 'content'.",
                provider=provider,
                parameter=f"messages[{index}].content",
                invalid_value=message.get("content"),
                validation_type="invalid_messages",
            )
    return list(messages)
