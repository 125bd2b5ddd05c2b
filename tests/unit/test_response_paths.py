"""Unit tests for dotted-path extraction from API responses."""

import pytest

from provisioning.errors import IdentityResolutionError
from provisioning.paths import extract_field

RESPONSE = {
    "AutoScalingConfiguration": {
        "AutoScalingConfigurationArn": "arn:example:cfg-1/abc",
        "AutoScalingConfigurationRevision": 1,
        "Latest": True,
    },
    "Items": [{"Id": "first"}, {"Id": "second"}],
}


@pytest.mark.parametrize("path,expected", [
    ("AutoScalingConfiguration.AutoScalingConfigurationArn", "arn:example:cfg-1/abc"),
    ("AutoScalingConfiguration.AutoScalingConfigurationRevision", 1),
    ("AutoScalingConfiguration.Latest", True),
    ("Items.1.Id", "second"),
])
def test_extracts_scalars(path, expected):
    """Test nested keys and list indexes resolve to scalars."""
    assert extract_field(RESPONSE, path) == expected


@pytest.mark.parametrize("path", [
    "",
    "AutoScalingConfiguration.Missing",
    "AutoScalingConfiguration",
    "Items.5.Id",
    "Items.first",
    "AutoScalingConfiguration.AutoScalingConfigurationArn.deeper",
])
def test_invalid_paths_raise(path):
    """Test missing, out-of-range and non-scalar paths raise IdentityResolutionError."""
    with pytest.raises(IdentityResolutionError):
        extract_field(RESPONSE, path)


def test_none_value_is_not_an_identity():
    """Test a null field is rejected rather than returned."""
    with pytest.raises(IdentityResolutionError):
        extract_field({"resource": {"arn": None}}, "resource.arn")
