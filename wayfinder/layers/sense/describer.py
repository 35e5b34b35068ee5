"""
Element metadata templates.

Turns a classified element's tag, attributes and flags into the
fields an agent reads: element type, label, description, capabilities
and a usage instruction. Everything here is a pure function of its
input, so identical markup always produces identical metadata.
"""

from typing import Dict, List, Optional

TEXT_INPUT_TYPES = ("text", "email", "password", "search", "url", "tel")

ELEMENT_TYPES = (
    "text_input",
    "checkbox",
    "radio_button",
    "button",
    "file_upload",
    "text_area",
    "dropdown",
    "link",
    "clickable_element",
    "text_element",
)
RAW_INPUT_PREFIX = "input_"

LABEL_MAX_TEXT = 100


def input_type(attributes: Dict[str, str]) -> str:
    """Normalised input type; missing or blank means "text"."""
    return (attributes.get("type") or "").strip().lower() or "text"


def is_known_element_type(element_type: str) -> bool:
    """True if element_type belongs to the closed taxonomy."""
    if element_type in ELEMENT_TYPES:
        return True
    return element_type.startswith(RAW_INPUT_PREFIX) and len(element_type) > len(RAW_INPUT_PREFIX)


def classify_element_type(tag: str, attributes: Dict[str, str], is_clickable: bool) -> str:
    if tag == "input":
        kind = input_type(attributes)
        if kind in TEXT_INPUT_TYPES:
            return "text_input"
        if kind == "checkbox":
            return "checkbox"
        if kind == "radio":
            return "radio_button"
        if kind in ("submit", "button"):
            return "button"
        if kind == "file":
            return "file_upload"
        return RAW_INPUT_PREFIX + kind
    if tag == "textarea":
        return "text_area"
    if tag == "select":
        return "dropdown"
    if tag == "button":
        return "button"
    if tag == "a":
        return "link"
    return "clickable_element" if is_clickable else "text_element"


def element_label(attributes: Dict[str, str], text: Optional[str]) -> Optional[str]:
    """Human label: aria-label > title > placeholder > name > short text."""
    for name in ("aria-label", "title", "placeholder", "name"):
        value = attributes.get(name)
        if value:
            return value
    if text and text.strip() and len(text) < LABEL_MAX_TEXT:
        return text
    return None


def _purpose(tag: str, attributes: Dict[str, str]) -> Optional[str]:
    if tag == "input":
        return {
            "search": "for entering search queries",
            "email": "for entering email addresses",
            "password": "for entering passwords",
            "submit": "for submitting forms",
        }.get(input_type(attributes), "for text input")
    if tag == "textarea":
        return "for multi-line text input"
    if tag == "select":
        return "for selecting from options"
    if tag == "button":
        return "that can be clicked"
    if tag == "a":
        href = attributes.get("href")
        return f"linking to '{href}'" if href else "that can be clicked"
    return None


def element_description(
    tag: str,
    element_type: str,
    attributes: Dict[str, str],
    label: Optional[str],
) -> str:
    """
    Sentence describing the element.

    Example:
        "A text input element labeled 'Search' with ID 'q' for entering search queries"
    """
    parts = [f"A {element_type.replace('_', ' ')} element"]
    if label:
        parts.append(f"labeled '{label}'")
    if attributes.get("id"):
        parts.append(f"with ID '{attributes['id']}'")
    purpose = _purpose(tag, attributes)
    if purpose:
        parts.append(purpose)
    return " ".join(parts)


def element_capabilities(
    tag: str,
    attributes: Dict[str, str],
    is_clickable: bool,
    is_interactable: bool,
) -> List[str]:
    capabilities = []
    if is_clickable:
        capabilities.append("clickable")
    if is_interactable:
        capabilities.append("can_receive_text_input")
    if tag == "select":
        capabilities.append("can_select_options")
    if tag == "input" and attributes.get("type"):
        extra = {
            "checkbox": "can_check_uncheck",
            "radio": "can_select",
            "file": "can_upload_files",
        }.get(input_type(attributes))
        if extra:
            capabilities.append(extra)
    return capabilities


def element_instruction(tag: str, attributes: Dict[str, str], is_clickable: bool) -> str:
    """How an agent should operate the element, in terms of session calls."""
    if tag == "input":
        kind = input_type(attributes)
        if kind == "search":
            return ("Use type_by_number() to enter search terms, then look for a "
                    "search button to click or press Enter")
        if kind in ("text", "email", "password", "url", "tel"):
            return "Use type_by_number() to enter text"
        if kind == "checkbox":
            return "Use click_by_number() to check/uncheck"
        if kind == "radio":
            return "Use click_by_number() to select this option"
        if kind in ("submit", "button"):
            return "Use click_by_number() to submit the form"
        return "Use click_by_number() to interact"
    if tag == "textarea":
        return "Use type_by_number() to enter multi-line text"
    if tag == "select":
        return "Use click_by_number() to open dropdown, then select an option"
    if tag == "button":
        return "Use click_by_number() to activate this button"
    if tag == "a":
        return "Use click_by_number() to follow this link"
    if is_clickable:
        return "Use click_by_number() to interact with this element"
    return "This element contains text content for reference"
