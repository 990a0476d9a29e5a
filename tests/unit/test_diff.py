"""Unit tests for change computation."""

from converge.resources import VPC, InternetGateway, compute_changes


def make_vpc(**kwargs):
    kwargs.setdefault("name", "main")
    kwargs.setdefault("cidr_block", "10.0.0.0/16")
    return VPC(**kwargs)


def test_missing_actual_is_a_create_with_all_set_fields():
    desired = make_vpc(enable_dns_support=True)
    changes = compute_changes(None, desired)

    assert changes.create
    assert not changes.is_empty()
    assert changes.field_names() == ["cidr_block", "enable_dns_support", "name", "tags"]


def test_identical_state_has_no_changes():
    desired = make_vpc(tags={"team": "net"})
    actual = make_vpc(id="vpc-1", tags={"team": "net"})

    changes = compute_changes(actual, desired)

    assert changes.is_empty()
    assert not changes.create


def test_internal_fields_are_not_compared():
    desired = make_vpc()
    actual = make_vpc(id="vpc-1", lifecycle="Ignore", shared=True)
    assert compute_changes(actual, desired).is_empty()


def test_unset_desired_fields_are_not_managed():
    desired = make_vpc()
    actual = make_vpc(id="vpc-1", enable_dns_hostnames=True)
    assert compute_changes(actual, desired).is_empty()


def test_tag_change_is_reported_with_previous_value():
    desired = make_vpc(tags={"team": "net"})
    actual = make_vpc(id="vpc-1", tags={"team": "ops"})

    changes = compute_changes(actual, desired)

    assert changes.field_names() == ["tags"]
    assert changes.describe()["tags"] == {
        "from": {"team": "ops", "Name": "main"},
        "to": {"team": "net", "Name": "main"},
    }


def test_references_compare_by_id():
    desired = InternetGateway(name="gw", vpc=make_vpc(id="vpc-1"))
    actual = InternetGateway(name="gw", id="igw-1", vpc=VPC(id="vpc-1"))
    assert compute_changes(actual, desired).is_empty()


def test_reference_to_other_object_is_a_change():
    desired = InternetGateway(name="gw", vpc=make_vpc(id="vpc-1"))
    actual = InternetGateway(name="gw", id="igw-1", vpc=VPC(id="vpc-2"))

    changes = compute_changes(actual, desired)

    assert changes.touches("vpc")
    assert changes.describe()["vpc"] == {"from": "vpc-2", "to": "vpc-1"}


def test_unattached_actual_reports_vpc_change():
    desired = InternetGateway(name="gw", vpc=make_vpc(id="vpc-1"))
    actual = InternetGateway(name="gw", id="igw-1")
    assert compute_changes(actual, desired).field_names() == ["vpc"]
