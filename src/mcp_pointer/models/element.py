"""Models for DOM elements captured by the browser extension."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ElementPosition(BaseModel):
    """Element geometry in page coordinates."""

    model_config = ConfigDict(extra="allow")

    x: float = Field(..., description="Left edge")
    y: float = Field(..., description="Top edge")
    width: float = Field(..., description="Element width")
    height: float = Field(..., description="Element height")


class ComponentInfo(BaseModel):
    """Component framework descriptor (React, Vue, ...)."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(None, description="Component name")
    sourceFile: Optional[str] = Field(None, description="Source file of the component")
    framework: Optional[str] = Field(None, description="Framework tag (react, vue, ...)")


class TargetedElement(BaseModel):
    """
    Snapshot of one DOM element at selection time.

    Only ``selector`` is required. Keys the relay does not know about are kept
    as extras, and ``cssProperties`` is never inspected: the style bundle is
    produced by the extension and passed through untouched.
    """

    model_config = ConfigDict(extra="allow")

    selector: str = Field(..., description="Stable CSS selector")
    tagName: Optional[str] = Field(None, description="HTML tag name (e.g., 'DIV')")
    id: Optional[str] = Field(None, description="Element ID attribute")
    classes: List[str] = Field(default_factory=list, description="CSS class names")
    innerText: Optional[str] = Field(None, description="Visible text content")
    attributes: Dict[str, str] = Field(
        default_factory=dict, description="Raw attribute map"
    )
    position: Optional[ElementPosition] = Field(None, description="Page geometry")
    cssProperties: Optional[Any] = Field(None, description="Opaque style bundle")
    componentInfo: Optional[ComponentInfo] = Field(
        None, description="Component framework descriptor"
    )
    idx: Optional[int] = Field(None, description="1-based selection order")
    timestamp: Optional[int] = Field(None, description="Capture time (epoch ms)")
    url: Optional[str] = Field(None, description="Source page URL")
    tabId: Optional[int] = Field(None, description="Originating browser tab")

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict holding exactly the keys the producer sent."""
        payload = self.model_dump(mode="json", exclude_unset=True)
        payload.update(self.model_extra or {})
        return payload


# Current selection: zero, one or many elements in selection order
Selection = List[TargetedElement]

SELECTION_ADAPTER = TypeAdapter(Selection)
