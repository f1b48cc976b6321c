import json
import sys
from pathlib import Path

import pytest

# Add src to sys.path so we can import qti_toolkit
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())


NAMESPACE_V3 = "http://www.imsglobal.org/xsd/imsqti_v3p0"
MATCH_CORRECT_V3 = "https://purl.imsglobal.org/spec/qti/v3p0/rptemplates/match_correct.xml"
MAP_RESPONSE_V3 = "https://purl.imsglobal.org/spec/qti/v3p0/rptemplates/map_response.xml"

CHOICE_BODY = """    <choiceInteraction responseIdentifier="RESPONSE" maxChoices="{max_choices}">
      <prompt>Pick one</prompt>
      <simpleChoice identifier="choiceA">Alpha</simpleChoice>
      <simpleChoice identifier="choiceB">Beta</simpleChoice>
      <simpleChoice identifier="choiceC">Gamma</simpleChoice>
    </choiceInteraction>"""


def make_item(
    identifier="q1",
    *,
    title="Sample",
    cardinality="single",
    base_type="identifier",
    correct=("choiceA",),
    body=None,
    max_choices=1,
    template=MATCH_CORRECT_V3,
    mapping="",
    namespace=NAMESPACE_V3,
):
    """Markup text of one item with a single RESPONSE declaration."""
    if body is None:
        body = CHOICE_BODY.format(max_choices=max_choices)
    values = "".join(f"\n        <value>{v}</value>" for v in correct)
    correct_block = (
        f"\n      <correctResponse>{values}\n      </correctResponse>" if correct else ""
    )
    processing = (
        f'\n  <responseProcessing template="{template}"/>' if template is not None else ""
    )
    return f"""<assessmentItem xmlns="{namespace}" identifier="{identifier}" title="{title}" adaptive="false" timeDependent="false">
  <responseDeclaration identifier="RESPONSE" cardinality="{cardinality}" baseType="{base_type}">{correct_block}{mapping}
  </responseDeclaration>
  <outcomeDeclaration identifier="SCORE" cardinality="single" baseType="float"/>
  <itemBody>
{body}
  </itemBody>{processing}
</assessmentItem>"""


# Common test fixtures
@pytest.fixture
def item_factory():
    """Return the markup item builder."""
    return make_item


@pytest.fixture
def choice_item() -> str:
    """One single-choice markup item, correct answer choiceA."""
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + make_item("q1")


@pytest.fixture
def three_items() -> str:
    """A bare sequence of three markup items."""
    items = [make_item(f"q{n}", title=f"Question {n}") for n in (1, 2, 3)]
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + "\n\n".join(items) + "\n"


@pytest.fixture
def test_document() -> str:
    """An assessmentTest wrapping two items in one section."""
    first = make_item("t1").replace("\n", "\n      ")
    second = make_item("t2").replace("\n", "\n      ")
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<assessmentTest xmlns="{NAMESPACE_V3}" identifier="test-1" title="Practice Test">
  <testPart identifier="part-1" navigationMode="linear" submissionMode="individual">
    <assessmentSection identifier="section-1" title="Section 1" visible="true">
      {first}
      {second}
    </assessmentSection>
  </testPart>
</assessmentTest>
"""


def make_json_item(identifier="j1", correct=("choiceA",), cardinality="single"):
    """JSON-syntax item as a dict."""
    return {
        "@type": "assessmentItem",
        "identifier": identifier,
        "title": "JSON Sample",
        "responseDeclaration": {
            "identifier": "RESPONSE",
            "cardinality": cardinality,
            "baseType": "identifier",
            "correctResponse": {"value": list(correct)},
        },
        "outcomeDeclaration": {
            "identifier": "SCORE",
            "cardinality": "single",
            "baseType": "float",
        },
        "itemBody": {
            "content": [
                {"@type": "p", "text": "Which letter comes first?"},
                {
                    "@type": "choiceInteraction",
                    "responseIdentifier": "RESPONSE",
                    "maxChoices": 1,
                    "prompt": "Pick one",
                    "choices": [
                        {"identifier": "choiceA", "text": "A"},
                        {"identifier": "choiceB", "text": "B"},
                    ],
                },
            ]
        },
        "responseProcessing": {"template": MATCH_CORRECT_V3},
    }


@pytest.fixture
def json_item_factory():
    """Return the JSON item builder."""
    return make_json_item


@pytest.fixture
def json_item() -> str:
    """One JSON-syntax item, correct answer choiceA."""
    return json.dumps(make_json_item(), indent=2)


@pytest.fixture
def json_items() -> str:
    """A JSON array of three items."""
    return json.dumps([make_json_item(f"j{n}") for n in (1, 2, 3)], indent=2)
