"""Validation utilities shared by the configuration models."""

__all__ = ["parse_comma_separated"]


def parse_comma_separated(
    value: str | list[str],
    strip: bool = True,
    filter_empty: bool = True,
    max_items: int | None = None,
) -> list[str]:
    """Parse comma-separated string into list of values.

    Config values such as OAuth scopes may be given either as a list (TOML)
    or as a comma-separated string (environment variables).

    Args:
        value: Comma-separated string or list
        strip: Whether to strip whitespace from each item
        filter_empty: Whether to filter out empty strings
        max_items: Maximum number of items allowed (default: None, no limit)

    Returns:
        List of parsed values

    Raises:
        ValueError: If max_items is exceeded
    """
    items = value if isinstance(value, list) else value.split(",")

    if max_items is not None and len(items) > max_items:
        raise ValueError(f"Too many items: got {len(items)}, maximum is {max_items}")

    if strip:
        items = [item.strip() for item in items]

    if filter_empty:
        items = [item for item in items if item]

    return items
