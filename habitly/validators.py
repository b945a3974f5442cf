from .exceptions import ValidationFailure

DEFAULT_PAGE = 1


def _as_int(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def coerce_page(page):
    """
    Return a 1-based page number; missing, malformed or non-positive
    values become 1.
    """
    page = _as_int(page)
    if page is None or page <= 0:
        return DEFAULT_PAGE
    return page


def coerce_page_size(size, default_size, max_size=None):
    """
    Return a positive page size. Missing, malformed or non-positive values
    fall back to ``default_size``; values above ``max_size`` are clamped.
    """
    size = _as_int(size)
    if size is None or size <= 0:
        size = default_size
    if max_size is not None and size > max_size:
        size = max_size
    return size


def coerce_pagination(page, size, config):
    """Apply both coercions using the page-size limits from ``config``."""
    return (
        coerce_page(page),
        coerce_page_size(size, config.default_page_size, config.max_page_size),
    )


def page_offset(page, size):
    return (page - 1) * size


def validate_status_code(value, choices):
    """
    Return ``value`` as an int when it is one of the known status codes,
    otherwise raise ValidationFailure.
    """
    code = _as_int(value)
    if code is None or code not in choices:
        raise ValidationFailure(f"Invalid status value: {value!r}")
    return code
