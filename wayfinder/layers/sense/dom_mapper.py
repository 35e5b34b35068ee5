"""
DOM Mapper - Element Discovery and Classification.

Reads the live document once, parses it with BeautifulSoup and builds
a typed, de-duplicated list of elements an agent can act on. All flags
are derived from markup (tag, role, attributes); no layout queries are
made during classification.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import logging

from bs4 import BeautifulSoup

from wayfinder.core.config import DomConfig
from wayfinder.exceptions import ScriptExecutionFailed
from wayfinder.layers.sense.describer import (
    classify_element_type,
    element_capabilities,
    element_description,
    element_instruction,
    element_label,
)
from wayfinder.layers.sense.selectors import (
    SelectorType,
    automation_marker,
    css_string,
    generate_css_selector,
    generate_xpath,
)
from wayfinder.utils.screenshot import take_base64

if TYPE_CHECKING:
    from wayfinder.core.capability import PageCapability

logger = logging.getLogger(__name__)

FORM_CONTROL_TAGS = ("input", "textarea", "select")

# Serialises the document with live form state mirrored into a clone,
# so typed values and chosen options show up in the markup without
# touching the real page.
DOCUMENT_HTML_SCRIPT = r"""
(() => {
  const root = document.documentElement;
  if (!root) return '';
  const clone = root.cloneNode(true);
  const live = root.querySelectorAll('input, textarea, select');
  const copies = clone.querySelectorAll('input, textarea, select');
  live.forEach((el, i) => {
    const copy = copies[i];
    if (!copy) return;
    const tag = el.tagName.toLowerCase();
    if (tag === 'textarea') {
      copy.textContent = el.value;
      return;
    }
    if (tag === 'select') {
      Array.from(el.options).forEach((option, j) => {
        const mirror = copy.options[j];
        if (!mirror) return;
        if (option.selected) mirror.setAttribute('selected', '');
        else mirror.removeAttribute('selected');
      });
      return;
    }
    const type = (el.type || 'text').toLowerCase();
    if (type === 'checkbox' || type === 'radio') {
      if (el.checked) copy.setAttribute('checked', '');
      else copy.removeAttribute('checked');
    } else if (type !== 'password' && type !== 'file') {
      copy.setAttribute('value', el.value);
    }
  });
  return clone.outerHTML;
})()
"""


@dataclass
class Element:
    """
    One DOM node of interest.

    The id is assigned per classification pass (elem_1, elem_2, ...)
    and is NOT stable across passes. Re-resolve by selector or label
    after the page changes.
    """
    id: str
    tag: str
    css_selector: str
    xpath: str
    text: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    is_clickable: bool = False
    is_interactable: bool = False
    is_visible: bool = True
    element_type: str = "text_element"
    label: Optional[str] = None
    description: str = ""
    capabilities: List[str] = field(default_factory=list)
    instruction: str = ""

    @property
    def element_id(self) -> Optional[str]:
        return self.attributes.get("id")

    @property
    def class_name(self) -> Optional[str]:
        return self.attributes.get("class")

    @property
    def placeholder(self) -> Optional[str]:
        return self.attributes.get("placeholder")

    @property
    def value(self) -> Optional[str]:
        return self.attributes.get("value")

    @property
    def text_content_or_value(self) -> str:
        """Current value for inputs, text content for everything else."""
        if self.tag == "input":
            return self.value or ""
        return self.text or ""

    def selector_for(self, selector_type: SelectorType) -> Optional[str]:
        """Selector in the requested scheme; None if the scheme does not apply."""
        if selector_type is SelectorType.CSS:
            return self.css_selector
        if selector_type is SelectorType.XPATH:
            return self.xpath
        marker = automation_marker(self.attributes)
        if marker is None:
            return None
        return f"[{marker}={css_string(self.attributes[marker])}]"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "tag": self.tag,
            "css_selector": self.css_selector,
            "xpath": self.xpath,
            "text": self.text,
            "attributes": dict(self.attributes),
            "is_clickable": self.is_clickable,
            "is_interactable": self.is_interactable,
            "is_visible": self.is_visible,
            "element_type": self.element_type,
            "label": self.label,
            "description": self.description,
            "capabilities": list(self.capabilities),
            "instruction": self.instruction,
        }

    def __str__(self) -> str:
        text = self.text or ""
        text_preview = text[:50] + "..." if len(text) > 50 else text
        attrs = ", ".join(
            f'{k}="{v}"' for k, v in self.attributes.items()
            if k in ["id", "class", "name", "type", "placeholder"]
        )
        return f"<{self.tag} {attrs}>{text_preview}</{self.tag}>"


@dataclass
class ElementFilter:
    """Criteria for narrowing an element list. Unset fields match anything."""
    tag_names: Optional[List[str]] = None
    has_text: Optional[bool] = None
    is_visible: Optional[bool] = None
    is_interactive: Optional[bool] = None
    has_attribute: Optional[str] = None

    def matches(self, element: Element) -> bool:
        if self.tag_names is not None and element.tag not in self.tag_names:
            return False
        if self.has_text is not None and bool(element.text) != self.has_text:
            return False
        if self.is_visible is not None and element.is_visible != self.is_visible:
            return False
        if self.is_interactive is not None:
            interactive = element.is_clickable or element.is_interactable
            if interactive != self.is_interactive:
                return False
        if self.has_attribute is not None and self.has_attribute not in element.attributes:
            return False
        return True


@dataclass
class DomState:
    """Snapshot of a page: where it was, what was on it, and when."""
    url: str
    title: str
    elements: List[Element] = field(default_factory=list)
    screenshot_base64: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def clickable_elements(self) -> List[Element]:
        return [e for e in self.elements if e.is_clickable]

    @property
    def input_elements(self) -> List[Element]:
        return [e for e in self.elements if e.tag in FORM_CONTROL_TAGS]

    @property
    def text_elements(self) -> List[Element]:
        return [
            e for e in self.elements
            if e.text and not e.is_clickable and not e.is_interactable
        ]

    @property
    def element_count(self) -> int:
        return len(self.elements)

    def find_by_tag(self, tag: str) -> List[Element]:
        tag = tag.lower()
        return [e for e in self.elements if e.tag == tag]

    def find_by_text(self, text: str) -> List[Element]:
        """Elements whose text contains `text` (case-insensitive)."""
        needle = text.lower()
        return [e for e in self.elements if e.text and needle in e.text.lower()]

    def filter(self, criteria: ElementFilter) -> List[Element]:
        return [e for e in self.elements if criteria.matches(e)]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "url": self.url,
            "title": self.title,
            "timestamp": self.timestamp.isoformat(),
            "element_count": self.element_count,
            "elements": [e.to_dict() for e in self.elements],
            "has_screenshot": self.screenshot_base64 is not None,
        }


class ElementClassifier:
    """
    Converts the current document into a list of Elements.

    Selection is the union of semantically interactive nodes and,
    when configured, text-bearing structural nodes. Two nodes with the
    same tag and identical attributes count as one element.

    Example:
        >>> classifier = ElementClassifier(page, tab)
        >>> elements = await classifier.classify()
        >>> for elem in elements:
        ...     print(elem.element_type, elem.css_selector)
    """

    INTERACTIVE_SELECTORS = [
        # Form elements
        "input", "button", "select", "textarea", "label", "fieldset",
        "legend", "optgroup", "option", "datalist",
        # Links and navigation
        "a", "area",
        # Interactive content
        "details", "summary", "dialog", "menu", "menuitem",
        "audio[controls]", "video[controls]",
        # Inline handlers
        "[onclick]", "[onchange]", "[onsubmit]", "[onkeydown]", "[onkeyup]",
        "[onfocus]", "[onblur]",
        # ARIA roles
        "[role='button']", "[role='link']", "[role='checkbox']", "[role='radio']",
        "[role='textbox']", "[role='searchbox']", "[role='combobox']",
        "[role='listbox']", "[role='tab']", "[role='tabpanel']",
        "[role='menuitem']", "[role='menubar']", "[role='menu']",
        "[role='dialog']", "[role='alertdialog']", "[role='tooltip']",
        "[role='slider']", "[role='spinbutton']", "[role='progressbar']",
        "[role='switch']", "[role='tree']", "[role='grid']", "[role='gridcell']",
        # Accessibility hooks
        "[tabindex]", "[aria-expanded]", "[aria-haspopup]", "[aria-controls]",
        "[aria-owns]", "[draggable='true']", "[contenteditable='true']",
        # Framework and test markers
        "[data-ved]", "[jsaction]", "[data-testid]", "[data-cy]", "[data-test]",
        "[data-automation]",
        "[id*='search']", "[name*='search']", "[class*='search']",
        "[placeholder*='search']", "[aria-label*='search']", "[title*='search']",
        # Common interactive class names
        ".btn", ".button", ".link", ".clickable", ".interactive", ".control",
        ".input", ".field", ".search",
        # Containers that navigate
        "[data-href]", "[data-url]", "[data-link]",
    ]

    TEXT_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "span", "div", "li", "td", "th"]

    # Never contribute text
    STRIPPED_TAGS = ["script", "style", "noscript", "template"]

    CLICKABLE_TAGS = ("a", "button", "summary", "area", "menuitem")
    CLICK_HANDLERS = ("onclick", "onchange", "onsubmit")
    CLICKABLE_ROLES = (
        "button", "link", "checkbox", "radio", "tab", "menuitem",
        "option", "switch", "slider",
    )
    INTERACTABLE_TAGS = ("input", "textarea", "select", "button")
    INTERACTABLE_ROLES = (
        "textbox", "searchbox", "combobox", "listbox", "slider",
        "spinbutton", "switch",
    )
    KEYBOARD_HANDLERS = ("onfocus", "onblur", "onkeydown", "onkeyup")
    HIDDEN_CLASS_MARKERS = ("hidden", "invisible", "d-none")

    def __init__(
        self,
        capability: "PageCapability",
        tab: Any,
        config: Optional[DomConfig] = None,
    ):
        """
        Initialize the classifier.

        Args:
            capability: Page capability used to read the document
            tab: Tab handle to classify
            config: Extraction options
        """
        self.capability = capability
        self.tab = tab
        self.config = config or DomConfig()

    async def classify(self) -> List[Element]:
        """Read the live document and classify it."""
        html = await self.capability.run_script(self.tab, DOCUMENT_HTML_SCRIPT)
        if not isinstance(html, str):
            raise ScriptExecutionFailed(
                f"Document serialisation returned {type(html).__name__}, expected str"
            )
        elements = self.classify_html(html)
        logger.debug(f"[Classifier] {len(elements)} elements from {len(html)} chars of HTML")
        return elements

    async def extract_dom_state(self, include_screenshot: bool = False) -> DomState:
        """Classify the page and bundle the result with URL, title and screenshot."""
        elements = await self.classify()
        url = await self.capability.get_url(self.tab)
        title = await self.capability.get_title(self.tab)
        screenshot = None
        if include_screenshot:
            screenshot = take_base64(await self.capability.screenshot(self.tab))
        return DomState(url=url, title=title, elements=elements, screenshot_base64=screenshot)

    def classify_html(self, html: str) -> List[Element]:
        """Classify an HTML document. Pure; usable without a browser."""
        soup = BeautifulSoup(html, "html.parser", multi_valued_attributes=None)
        for node in soup.find_all(self.STRIPPED_TAGS):
            node.decompose()

        elements: List[Element] = []
        seen = set()

        for node in soup.select(", ".join(self.INTERACTIVE_SELECTORS)):
            key = self._dedup_key(node)
            if key in seen:
                continue
            seen.add(key)
            elements.append(self._build_element(node, f"elem_{len(elements) + 1}"))

        if self.config.extract_all_elements:
            for node in soup.select(", ".join(self.TEXT_TAGS)):
                text = self._node_text(node)
                if not text or len(text) <= self.config.min_text_length:
                    continue
                key = self._dedup_key(node)
                if key in seen:
                    continue
                seen.add(key)
                elements.append(self._build_element(node, f"elem_{len(elements) + 1}", text))

        return elements

    def _build_element(self, node, element_id: str, text: Optional[str] = None) -> Element:
        tag = node.name.lower()
        attributes = {k: ("" if v is None else str(v)) for k, v in node.attrs.items()}
        if text is None:
            text = self._node_text(node)
        if text and len(text) > self.config.max_text_length:
            text = text[: self.config.max_text_length]

        clickable = self.is_clickable(tag, attributes)
        interactable = self.is_interactable(tag, attributes)
        element_type = classify_element_type(tag, attributes, clickable)
        label = element_label(attributes, text)

        return Element(
            id=element_id,
            tag=tag,
            css_selector=generate_css_selector(tag, attributes),
            xpath=generate_xpath(tag, attributes),
            text=text or None,
            attributes=attributes,
            is_clickable=clickable,
            is_interactable=interactable,
            is_visible=not self.is_hidden(attributes),
            element_type=element_type,
            label=label,
            description=element_description(tag, element_type, attributes, label),
            capabilities=element_capabilities(tag, attributes, clickable, interactable),
            instruction=element_instruction(tag, attributes, clickable),
        )

    @staticmethod
    def _node_text(node) -> str:
        return " ".join(node.get_text(" ").split())

    @staticmethod
    def _dedup_key(node) -> tuple:
        return node.name.lower(), tuple(sorted((k, str(v)) for k, v in node.attrs.items()))

    @classmethod
    def is_clickable(cls, tag: str, attributes: Dict[str, str]) -> bool:
        if tag in cls.CLICKABLE_TAGS:
            return True
        if tag == "input":
            return (attributes.get("type") or "text").lower() != "hidden"
        if any(h in attributes for h in cls.CLICK_HANDLERS):
            return True
        if attributes.get("role") in cls.CLICKABLE_ROLES:
            return True
        return (
            "tabindex" in attributes
            or "aria-expanded" in attributes
            or "aria-haspopup" in attributes
            or attributes.get("draggable") == "true"
        )

    @classmethod
    def is_interactable(cls, tag: str, attributes: Dict[str, str]) -> bool:
        if tag in cls.INTERACTABLE_TAGS:
            return (attributes.get("type") or "text").lower() != "hidden"
        if attributes.get("contenteditable") == "true":
            return True
        if attributes.get("role") in cls.INTERACTABLE_ROLES:
            return True
        return "tabindex" in attributes or any(h in attributes for h in cls.KEYBOARD_HANDLERS)

    @classmethod
    def is_hidden(cls, attributes: Dict[str, str]) -> bool:
        """Attribute-only visibility check; stylesheet rules are not seen."""
        if (attributes.get("type") or "").lower() == "hidden":
            return True
        style = (attributes.get("style") or "").lower()
        if any(rule in style for rule in (
            "display:none", "display: none", "visibility:hidden", "visibility: hidden",
        )):
            return True
        if "hidden" in attributes:
            return True
        class_name = (attributes.get("class") or "").lower()
        return any(marker in class_name for marker in cls.HIDDEN_CLASS_MARKERS)
