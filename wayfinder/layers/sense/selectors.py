"""
Selector generation for classified elements.

Both CSS and XPath selectors follow the same attribute priority:
id > name > class > role > test marker > aria-label > bare tag.
The result is best-effort and may match more than one node.
"""

from enum import Enum
from typing import Dict, Optional

TEST_ID_ATTRIBUTES = ("data-testid", "data-test", "data-cy", "data-automation")

_CSS_SPECIAL = set(" .#:[]()'\"\\>+~,*=^$|!/@%&{}")


class SelectorType(Enum):
    """Addressing schemes an element can be located by."""
    CSS = "css"
    XPATH = "xpath"
    TEST_ID = "test_id"


def css_escape(value: str) -> str:
    """Escape a value for use as a CSS identifier (id or class name)."""
    out = []
    for i, ch in enumerate(value):
        if i == 0 and ch.isdigit():
            out.append(f"\\3{ch} ")
        elif ch in _CSS_SPECIAL:
            out.append("\\" + ch)
        else:
            out.append(ch)
    return "".join(out)


def css_string(value: str) -> str:
    """Quote a value for a CSS attribute selector."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def xpath_literal(value: str) -> str:
    """Quote a value as an XPath string literal."""
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{p}'" for p in parts) + ")"


def _present(attributes: Dict[str, str], name: str) -> Optional[str]:
    value = attributes.get(name)
    if value is None or not value.strip():
        return None
    return value


def automation_marker(attributes: Dict[str, str]) -> Optional[str]:
    """Name of the first automation marker attribute present, if any."""
    for name in TEST_ID_ATTRIBUTES:
        if _present(attributes, name):
            return name
    return None


def _priority_attribute(attributes: Dict[str, str]):
    """(kind, attribute name, value) of the highest-priority hook, or None."""
    for name in ("id", "name", "class", "role"):
        value = _present(attributes, name)
        if value:
            return name, name, value
    marker = automation_marker(attributes)
    if marker:
        return "test_id", marker, attributes[marker]
    value = _present(attributes, "aria-label")
    if value:
        return "aria-label", "aria-label", value
    return None


def generate_css_selector(tag: str, attributes: Dict[str, str]) -> str:
    """CSS selector for an element by attribute priority."""
    hook = _priority_attribute(attributes)
    if hook is None:
        return tag
    kind, name, value = hook
    if kind == "id":
        return f"{tag}#{css_escape(value)}"
    if kind == "class":
        classes = [css_escape(c) for c in value.split()]
        return tag + "." + ".".join(classes)
    return f"{tag}[{name}={css_string(value)}]"


def generate_xpath(tag: str, attributes: Dict[str, str]) -> str:
    """XPath selector for an element by attribute priority."""
    hook = _priority_attribute(attributes)
    if hook is None:
        return f"//{tag}"
    _, name, value = hook
    return f"//{tag}[@{name}={xpath_literal(value)}]"
