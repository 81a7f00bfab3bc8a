"""
Test support utilities for cdf-sync tests.

Helpers that don't fit as pytest fixtures but are useful across
multiple test files. The in-memory collaborators live in ``fakes``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def assert_dict_subset(actual: dict, expected: dict, path: str = "") -> None:
    """
    Assert that expected is a subset of actual (recursive).

    Useful for payload checks where not every field matters.
    """
    for key, expected_value in expected.items():
        current_path = f"{path}.{key}" if path else key

        assert key in actual, f"Missing key at {current_path}"
        actual_value = actual[key]

        if isinstance(expected_value, dict) and isinstance(actual_value, dict):
            assert_dict_subset(actual_value, expected_value, current_path)
        else:
            assert actual_value == expected_value, (
                f"Mismatch at {current_path}: "
                f"expected {expected_value!r}, got {actual_value!r}"
            )


class MaterializationOrderValidator:
    """
    Validates the order in which a store saved entities.

    Usage:
        validator = MaterializationOrderValidator(store.save_order)
        validator.assert_before(b, a)
        validator.assert_dependency_order(document)
    """

    def __init__(self, save_order: Iterable[str]) -> None:
        self.order = list(save_order)
        self._index: dict[str, int] = {}
        for i, uuid in enumerate(self.order):
            self._index.setdefault(uuid, i)

    def get_index(self, uuid: str) -> int:
        if uuid not in self._index:
            raise ValueError(f"Entity '{uuid}' was never saved, order: {self.order}")
        return self._index[uuid]

    def assert_before(self, first: str, second: str) -> None:
        first_idx = self.get_index(first)
        second_idx = self.get_index(second)
        assert first_idx < second_idx, (
            f"Expected '{first}' (index {first_idx}) before "
            f"'{second}' (index {second_idx}), order: {self.order}"
        )

    def assert_dependency_order(self, objects: Iterable[Any]) -> None:
        """Every saved object comes after every dependency that was also saved."""
        for cdf in objects:
            if cdf.uuid not in self._index:
                continue
            for dependency in cdf.dependencies:
                if dependency in self._index:
                    self.assert_before(dependency, cdf.uuid)
