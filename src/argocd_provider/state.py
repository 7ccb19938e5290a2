# ABOUTME: Declared resource record exchanged with the outer infrastructure tool
# ABOUTME: Holds named attribute values and the resource identifier

"""Declarative-state record for one resource instance."""

from __future__ import annotations

from typing import Any


class ResourceData:
    """
    Attribute values and identifier of one declared resource.

    The outer tool fills the record from configuration (and prior state),
    hands it to a resource operation, and diffs the result afterwards.

    IDENTIFIER:
    -----------
    "" means the resource has not been created, or no longer exists.
    After a successful create it is ArgoCD's canonical key for the object
    and every later lookup uses it.

    EXPLICITLY SET:
    ---------------
    get_ok() reports a value as set only if it is present and not a zero
    value (None, "", False, 0). Expanders copy only such values into API
    requests.

        d = ResourceData({"repo": "https://git.example.com/repo.git"})
        d.get_ok("repo")      # ("https://git.example.com/repo.git", True)
        d.get_ok("username")  # (None, False)
    """

    def __init__(self, values: dict[str, Any] | None = None, id: str = "") -> None:  # noqa: A002
        self._values: dict[str, Any] = dict(values or {})
        self._id = id

    def __repr__(self) -> str:
        return f"ResourceData(id={self._id!r}, keys={sorted(self._values)})"

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: str) -> None:
        self._id = value

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def get_ok(self, name: str) -> tuple[Any, bool]:
        """Return (value, True) if the attribute holds a non-zero value."""
        value = self._values.get(name)
        return value, bool(value)

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def to_dict(self) -> dict[str, Any]:
        """Copy of all attribute values."""
        return dict(self._values)
