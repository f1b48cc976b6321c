"""
Module: vocabulary

Purpose:
    The fixed, versioned vocabulary the parser recognises: namespaces,
    schema locations, response-processing template URLs, static content
    tags, supported interaction tags and human descriptions for the
    constructs the engine does not model.

Key Functions:
    - local_name(): Strip a namespace prefix from a tag
    - describe_unsupported(): Human description for an unsupported kind
    - namespace_for(), schema_location_for(), template_url()

Dependencies:
    - .models.enums: SpecVersion

Used By:
    - parsing: Recognition and version detection
    - editing.templates: Namespaces and template URLs
    - scoring.templates: Template classification
"""

from __future__ import annotations

from .models.enums import SpecVersion

ITEM_TAG = "assessmentItem"
TEST_TAG = "assessmentTest"
TEST_PART_TAG = "testPart"
SECTION_TAG = "assessmentSection"

XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

_NAMESPACES = {
    SpecVersion.V2_1: "http://www.imsglobal.org/xsd/imsqti_v2p1",
    SpecVersion.V3_0: "http://www.imsglobal.org/xsd/imsqti_v3p0",
}

_SCHEMA_LOCATIONS = {
    SpecVersion.V2_1: "http://www.imsglobal.org/xsd/qti/qtiv2p1/imsqti_v2p1.xsd",
    SpecVersion.V3_0: "http://www.imsglobal.org/xsd/qti/qtiv3p0/imsqti_v3p0.xsd",
}

_TEMPLATE_BASES = {
    SpecVersion.V2_1: "http://www.imsglobal.org/question/qti_v2p1/rptemplates",
    SpecVersion.V3_0: "http://www.imsglobal.org/question/qti_v3p0/rptemplates",
}

# Substrings that identify a version in a namespace or schema location.
VERSION_MARKERS = (
    ("imsqti_v3p0", SpecVersion.V3_0),
    ("qtiv3p0", SpecVersion.V3_0),
    ("imsqti_v2p1", SpecVersion.V2_1),
    ("qtiv2p1", SpecVersion.V2_1),
    ("imsqti_v2p2", SpecVersion.V2_1),
)

MATCH_CORRECT = "match_correct"
MAP_RESPONSE = "map_response"
MATCH_NONE = "match_none"

INTERACTION_TAGS = frozenset({
    "choiceInteraction",
    "textEntryInteraction",
    "extendedTextInteraction",
    "hottextInteraction",
    "sliderInteraction",
    "orderInteraction",
})

# Static XHTML-like content the body may contain.
STATIC_TAGS = frozenset({
    "p", "div", "span", "br", "hr", "img", "a",
    "audio", "video", "source", "track", "object", "param",
    "table", "caption", "colgroup", "col", "thead", "tbody", "tfoot", "tr", "th", "td",
    "ul", "ol", "li", "dl", "dt", "dd",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "b", "i", "u", "em", "strong", "sub", "sup", "small", "big", "tt",
    "code", "pre", "kbd", "samp", "var", "q", "cite", "abbr", "acronym", "dfn",
    "blockquote", "address", "figure", "figcaption", "label",
})

_UNSUPPORTED_DESCRIPTIONS = {
    "associateInteraction": "Association/matching pairs",
    "matchInteraction": "Matrix matching questions",
    "gapMatchInteraction": "Gap matching with draggable items",
    "inlineChoiceInteraction": "Inline dropdown selections",
    "hotspotInteraction": "Image hotspot clicking",
    "selectPointInteraction": "Point selection on images",
    "graphicOrderInteraction": "Graphic ordering tasks",
    "graphicAssociateInteraction": "Graphic association tasks",
    "graphicGapMatchInteraction": "Graphic gap matching",
    "positionObjectInteraction": "Object positioning",
    "drawingInteraction": "Drawing/sketching",
    "uploadInteraction": "File upload questions",
    "mediaInteraction": "Media interaction elements",
    "customInteraction": "Custom interaction elements",
    "endAttemptInteraction": "End-attempt buttons",
    "portableCustomInteraction": "Portable custom interactions",
    "modalFeedback": "Modal feedback elements",
    "feedbackBlock": "Feedback blocks",
    "feedbackInline": "Inline feedback",
    "rubricBlock": "Rubric blocks",
    "templateDeclaration": "Template variables",
    "templateProcessing": "Template processing rules",
    "outcomeProcessing": "Outcome processing rules",
    "assessmentItemRef": "References to external items",
    "preCondition": "Test pre-conditions",
    "branchRule": "Test branching rules",
    "selection": "Section item selection rules",
    "ordering": "Section ordering rules",
    "testFeedback": "Test feedback",
    "timeLimits": "Time limits",
    "itemSessionControl": "Item session controls",
    "stylesheet": "Stylesheet references",
    "areaMapping": "Area mappings",
    "math": "MathML expressions",
}


def local_name(tag: str) -> str:
    """Return ``tag`` without any namespace prefix."""
    return tag.rsplit(":", 1)[-1]


def describe_unsupported(kind: str) -> str:
    """Human description for an unsupported construct kind."""
    return _UNSUPPORTED_DESCRIPTIONS.get(kind, f"{kind} elements")


def is_interaction_tag(name: str) -> bool:
    """True for any interaction tag, supported or not."""
    return name.endswith("Interaction")


def namespace_for(version: SpecVersion) -> str:
    return _NAMESPACES[version]


def schema_location_for(version: SpecVersion) -> str:
    return _SCHEMA_LOCATIONS[version]


def template_url(version: SpecVersion, template: str) -> str:
    """Canonical response-processing template URL, e.g. ``.../match_correct``."""
    return f"{_TEMPLATE_BASES[version]}/{template}"
