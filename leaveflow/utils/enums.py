"""Enum/str interchange: rules, contexts and columns may hold either form."""
from enum import Enum


def enum_value(v):
    """
    Unwrap an Enum member to its value; leave any other value untouched.

        >>> enum_value(Role.HR_ADMIN)
        'HR_ADMIN'
        >>> enum_value("HR_ADMIN")
        'HR_ADMIN'
    """
    if isinstance(v, Enum):
        return v.value
    return v
