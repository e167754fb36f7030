"""
Composition state transitions for memberships.

The four operators are mutually exclusive: choosing one replaces the
previous choice. Inverse is independent of the operator.
"""

from models.mask_form import Membership, OperatorKind


def set_operator(membership: Membership, op: OperatorKind) -> bool:
    """
    Switch a membership to an operator.

    Returns:
        False if the operator was already set (nothing changes), True otherwise
    """
    if membership.state.operator is op:
        return False
    membership.state.operator = op
    return True


def toggle_inverse(membership: Membership) -> bool:
    """Flip the inverse flag. Always a change."""
    membership.state.inverse = not membership.state.inverse
    return True


def format_label(name: str, opacity: float = 1.0) -> str:
    """Display label of a row: the form name, plus "NN%" when not opaque."""
    if opacity != 1.0:
        return f"{name} {int(opacity * 100)}%"
    return name


__all__ = [
    "set_operator",
    "toggle_inverse",
    "format_label",
]
