import re

_NATURAL_CHUNKS = re.compile(r"(\d+)")


def clean_text(value) -> str:
    """
    Convert a cell value into a stripped string.
    - None and NaN (float or the literal 'nan' pandas leaves behind) become ''
    """
    if value is None or (isinstance(value, float) and str(value) == "nan"):
        return ""
    text = str(value).strip()
    if text.lower() == "nan":
        return ""
    return text


def natural_key(value) -> tuple:
    """Sort key comparing digit runs numerically ('2' < '10', '10' < '10-PRE')."""
    parts = _NATURAL_CHUNKS.split(clean_text(value).lower())
    return tuple((0, int(p)) if i % 2 else (1, p) for i, p in enumerate(parts))
