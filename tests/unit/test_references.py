"""Unit tests for literal values and property references."""

from converge.references import (
    PropertyReference,
    ResolvedValue,
    literal_from_value,
    literal_property,
    to_terraform_value,
)


def test_resolved_value_is_not_deferred():
    literal = literal_from_value("vpc-123")
    assert isinstance(literal, ResolvedValue)
    assert not literal.is_deferred()
    assert literal.to_terraform() == "vpc-123"


def test_property_reference_renders_interpolation():
    literal = literal_property("aws_vpc", "main", "id")
    assert isinstance(literal, PropertyReference)
    assert literal.is_deferred()
    assert literal.to_terraform() == "${aws_vpc.main.id}"


def test_property_reference_defaults_to_id():
    assert PropertyReference("aws_vpc", "main").to_terraform() == "${aws_vpc.main.id}"


def test_to_terraform_value_converts_nested_values():
    value = {
        "vpc_id": literal_property("aws_vpc", "main"),
        "ids": [literal_from_value("igw-1"), "plain"],
        "tags": {"Name": "main"},
    }
    assert to_terraform_value(value) == {
        "vpc_id": "${aws_vpc.main.id}",
        "ids": ["igw-1", "plain"],
        "tags": {"Name": "main"},
    }


def test_references_are_hashable_values():
    assert literal_property("aws_vpc", "a") == literal_property("aws_vpc", "a")
    assert len({literal_from_value(1), literal_from_value(1)}) == 1
