"""Path utilities for output file naming."""

import re
import string


def sanitize_for_filesystem(name: str, replacement: str = "_") -> str:
    """Sanitize a snapshot or type name to be safe for use as a filename."""
    if not name:
        return "unnamed"

    sanitized = name.replace("::", "__").replace("<", "_").replace(">", "_")

    valid_chars = set(string.ascii_letters + string.digits + "_-.")
    sanitized = "".join(c if c in valid_chars else replacement for c in sanitized)

    # Collapse runs of the replacement character
    if replacement:
        sanitized = re.sub(re.escape(replacement) + "+", replacement, sanitized)
        sanitized = sanitized.strip(replacement)

    # Leading dots would create hidden files
    sanitized = sanitized.lstrip(".")
    if not sanitized:
        return "unnamed"

    if len(sanitized) > 200:
        sanitized = sanitized[:200].rstrip(replacement)

    return sanitized


def create_model_filename(snapshot: str, suffix: str = "") -> str:
    """Create a safe JSON filename for a snapshot's type model."""
    base_name = sanitize_for_filesystem(snapshot)
    if suffix:
        base_name = f"{base_name}_{sanitize_for_filesystem(suffix)}"
    return f"{base_name}.json"
