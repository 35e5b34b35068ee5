"""
Highlighter - Numbered Handles for Interactive Elements.

Every highlight pass classifies the page, numbers the interactive
elements 1..N and draws one colored overlay per element in a single
batched script. Numbers only mean something within the pass that
issued them: the registry is emptied before each new pass.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import json
import logging

from wayfinder.core.config import DomConfig
from wayfinder.exceptions import ElementNotFound
from wayfinder.layers.sense.dom_mapper import FORM_CONTROL_TAGS, Element

if TYPE_CHECKING:
    from wayfinder.core.capability import PageCapability
    from wayfinder.layers.sense.dom_mapper import ElementClassifier

logger = logging.getLogger(__name__)

HIGHLIGHT_CLASS = "wayfinder-highlight"
HIGHLIGHT_STYLE_ID = "wayfinder-highlight-style"

TAG_COLORS = {
    "button": "#0000FF",
    "input": "#00FF00",
    "select": "#FF6600",
    "textarea": "#9900FF",
    "a": "#00FFFF",
}
DEFAULT_COLOR = "#FF0000"

_DRAW_TEMPLATE = r"""
(() => {
  const entries = %(entries)s;
  if (!document.getElementById('%(style_id)s')) {
    const style = document.createElement('style');
    style.id = '%(style_id)s';
    style.textContent =
      '.%(cls)s { position: absolute; pointer-events: none; z-index: 2147483646;' +
      ' box-sizing: border-box; border: 2px solid; }' +
      '.%(cls)s-label { position: absolute; top: -18px; left: -2px; padding: 0 4px;' +
      ' font: bold 12px monospace; color: #fff; }';
    (document.head || document.documentElement).appendChild(style);
  }
  let drawn = 0;
  for (const entry of entries) {
    const target = document.querySelector(entry.selector);
    if (!target) continue;
    const rect = target.getBoundingClientRect();
    if (rect.width <= 0 || rect.height <= 0) continue;
    const box = document.createElement('div');
    box.className = '%(cls)s';
    box.setAttribute('data-wayfinder-number', String(entry.number));
    box.style.left = (rect.left + window.scrollX) + 'px';
    box.style.top = (rect.top + window.scrollY) + 'px';
    box.style.width = rect.width + 'px';
    box.style.height = rect.height + 'px';
    box.style.borderColor = entry.color;
    const label = document.createElement('div');
    label.className = '%(cls)s-label';
    label.style.background = entry.color;
    label.textContent = String(entry.number);
    box.appendChild(label);
    document.body.appendChild(box);
    drawn += 1;
  }
  return drawn;
})()
"""

CLEAR_HIGHLIGHTS_SCRIPT = r"""
(() => {
  const boxes = document.querySelectorAll('.%(cls)s');
  boxes.forEach((box) => box.remove());
  const style = document.getElementById('%(style_id)s');
  if (style) style.remove();
  return boxes.length;
})()
""" % {"cls": HIGHLIGHT_CLASS, "style_id": HIGHLIGHT_STYLE_ID}


@dataclass(frozen=True)
class HighlightEntry:
    """A numbered handle issued by one highlight pass."""
    element_id: str
    number: int
    color: str
    element_type: str
    selector: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "element_id": self.element_id,
            "number": self.number,
            "color": self.color,
            "element_type": self.element_type,
            "selector": self.selector,
        }


def color_for_tag(tag: str) -> str:
    return TAG_COLORS.get(tag, DEFAULT_COLOR)


def build_draw_script(entries: List[HighlightEntry]) -> str:
    """One script drawing every overlay of a pass."""
    payload = [{"number": e.number, "selector": e.selector, "color": e.color} for e in entries]
    return _DRAW_TEMPLATE % {
        "entries": json.dumps(payload),
        "cls": HIGHLIGHT_CLASS,
        "style_id": HIGHLIGHT_STYLE_ID,
    }


def select_highlight_targets(elements: List[Element], include_hidden: bool = False) -> List[Element]:
    """
    Elements that get numbers, in numbering order.

    Clickable elements first in document order, then form controls
    that were not already included.
    """
    chosen: List[Element] = []
    seen = set()
    clickable = [e for e in elements if e.is_clickable]
    inputs = [e for e in elements if e.tag in FORM_CONTROL_TAGS]
    for element in clickable + inputs:
        if element.id in seen:
            continue
        if not include_hidden and not element.is_visible:
            continue
        seen.add(element.id)
        chosen.append(element)
    return chosen


class HighlightRegistry:
    """
    Issues and resolves highlight numbers for one tab.

    Example:
        >>> registry = HighlightRegistry(page, tab, classifier)
        >>> entries = await registry.rehighlight()
        >>> element = registry.resolve(1)
    """

    def __init__(
        self,
        capability: "PageCapability",
        tab: Any,
        classifier: "ElementClassifier",
        config: Optional[DomConfig] = None,
    ):
        self.capability = capability
        self.tab = tab
        self.classifier = classifier
        self.config = config or DomConfig()
        self._entries: List[HighlightEntry] = []
        self._elements: Dict[int, Element] = {}
        self.pass_count = 0

    @property
    def entries(self) -> List[HighlightEntry]:
        """Entries of the current pass, ordered by number."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    async def rehighlight(self) -> List[HighlightEntry]:
        """Clear everything, re-classify, renumber and redraw."""
        await self.clear()

        elements = await self.classifier.classify()
        targets = select_highlight_targets(elements, self.config.include_hidden_elements)
        entries = [
            HighlightEntry(
                element_id=element.id,
                number=number,
                color=color_for_tag(element.tag),
                element_type=element.element_type,
                selector=element.css_selector,
            )
            for number, element in enumerate(targets, start=1)
        ]

        drawn = 0
        if entries:
            drawn = await self.capability.run_script(self.tab, build_draw_script(entries)) or 0

        self._entries = entries
        self._elements = {entry.number: element for entry, element in zip(entries, targets)}
        self.pass_count += 1
        logger.info(
            f"[Highlight] Pass {self.pass_count}: {len(entries)} numbered, {drawn} drawn "
            f"({len(elements)} classified)"
        )
        return self.entries

    def reset(self) -> None:
        """Forget the current numbers without touching the page."""
        self._entries = []
        self._elements = {}

    async def clear(self) -> int:
        """Remove all overlays and forget the current numbers. Idempotent."""
        self.reset()
        removed = await self.capability.run_script(self.tab, CLEAR_HIGHLIGHTS_SCRIPT) or 0
        if removed:
            logger.debug(f"[Highlight] Removed {removed} overlays")
        return removed

    def entry(self, number: int) -> HighlightEntry:
        """Entry for a number of the current pass."""
        if number < 1 or number > len(self._entries):
            raise ElementNotFound(
                number, f"no element #{number} in current highlight pass of {len(self._entries)}"
            )
        return self._entries[number - 1]

    def resolve(self, number: int) -> Element:
        """Element behind a number of the current pass."""
        self.entry(number)
        return self._elements[number]

    def record_value(self, number: int, value: str) -> Element:
        """Reflect a value typed into element `number` in the current snapshot."""
        element = self.resolve(number)
        updated = replace(
            element,
            attributes={**element.attributes, "value": value},
            text=value if element.tag == "textarea" else element.text,
        )
        self._elements[number] = updated
        return updated
