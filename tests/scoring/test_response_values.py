"""
Unit Tests for Response Normalisation
"""

import pytest

from qti_toolkit.core.models import BaseType, Cardinality, ResponseDeclaration
from qti_toolkit.scoring import ResponseShapeError, normalize_response


class TestNormalizeResponse:
    """Tests for normalize_response."""

    def test_normalize_when_scalar_then_one_tuple(self):
        decl = ResponseDeclaration("RESPONSE", Cardinality.SINGLE, BaseType.INTEGER)
        assert normalize_response("7", decl) == (7,)

    def test_normalize_when_sequence_has_blanks_then_dropped(self):
        decl = ResponseDeclaration("RESPONSE", Cardinality.MULTIPLE, BaseType.IDENTIFIER)
        assert normalize_response(["A", "", None, " C "], decl) == ("A", "C")

    def test_normalize_when_record_then_raises(self):
        decl = ResponseDeclaration("RESPONSE", Cardinality.RECORD)
        with pytest.raises(ResponseShapeError, match="record"):
            normalize_response("x", decl)

    def test_normalize_when_blank_then_empty(self):
        decl = ResponseDeclaration("RESPONSE", Cardinality.SINGLE, BaseType.STRING)
        assert normalize_response("  ", decl) == ()
