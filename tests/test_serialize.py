import json
import math

import pytest
import yaml

from pcode.pcode_serialize import serialize, to_builtin
from pcode.pcode_datatypes import Deferred, Value, CoercionError


def test_json_output():
    s = serialize([12.0, 1.5, "a", True], fmt="json")
    assert json.loads(s) == [12, 1.5, "a", True]
    assert serialize(12.0, fmt="json", pretty=False) == "12"


def test_yaml_output():
    s = serialize(["x", 2.0, [False]], fmt="yaml")
    assert yaml.safe_load(s) == ["x", 2, [False]]


def test_non_finite_numbers_are_written_as_text():
    assert to_builtin([math.inf, math.nan]) == ["inf", "NaN"]


@pytest.mark.parametrize("value", [Deferred(Value(1.0)), print, [print]])
def test_functions_and_lambdas_cannot_be_serialized(value):
    with pytest.raises(CoercionError):
        serialize(value, fmt="json")


def test_unsupported_format():
    with pytest.raises(ValueError, match="Unsupported serialization format"):
        serialize(1.0, fmt="xml")
