"""Dotted-path lookups into control-plane responses.

Paths use the same flattening CDK applies to AwsCustomResource responses:
"AutoScalingConfiguration.AutoScalingConfigurationArn" walks nested dicts,
and a numeric segment such as "Items.0.Id" indexes into a list.
"""

from typing import Any, Mapping

from provisioning.errors import IdentityResolutionError

SCALAR_TYPES = (str, int, float, bool)


def extract_field(response: Mapping[str, Any], path: str) -> Any:
    """Return the scalar found at path inside response.

    Raises:
        IdentityResolutionError: If the path is empty, a segment is missing,
            or the value at the end of the path is not a scalar
    """
    if not path or not path.strip("."):
        raise IdentityResolutionError(path, "empty path")

    current: Any = response
    walked = []
    for segment in path.split("."):
        walked.append(segment)
        if isinstance(current, Mapping):
            if segment not in current:
                raise IdentityResolutionError(path, f"'{'.'.join(walked)}' not present")
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                raise IdentityResolutionError(path, f"'{'.'.join(walked)}' out of range")
            current = current[index]
        else:
            raise IdentityResolutionError(
                path, f"cannot descend into {type(current).__name__} at '{'.'.join(walked)}'"
            )

    if current is None or not isinstance(current, SCALAR_TYPES):
        raise IdentityResolutionError(path, f"value is {type(current).__name__}, not a scalar")
    return current
