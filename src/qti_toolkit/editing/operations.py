"""
Module: editing.operations

Purpose:
    Discrete edit operations. Each is an immutable request that
    apply_edit() turns into a text splice on the current raw document.

Key Classes:
    - SetCorrectResponse: Replace the correct values of one declaration
    - InsertItem: Splice a new item fragment in after an index
    - ReorderItems: Permute whole item fragments
    - ReplaceWhole: Replace the entire raw text

Key Functions:
    - move_order(): Permutation for moving one item to a new index

Used By:
    - editing.updater
    - qti_toolkit.session
    - qti_toolkit.cli
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union


@dataclass(frozen=True)
class SetCorrectResponse:
    """
    Set the correct response of an item.

    Attributes:
        item_id: Identifier of the target item
        values: New correct values; an empty tuple removes the
            correctResponse element
        response_identifier: Declaration to update; the item's primary
            interaction's declaration when None
    """

    item_id: str
    values: Tuple[Any, ...]
    response_identifier: Optional[str] = None

    def __post_init__(self) -> None:
        values = self.values
        if isinstance(values, (str, int, float, bool)):
            values = (values,)
        object.__setattr__(self, "values", tuple(values))
        if not self.item_id:
            raise ValueError("item_id must not be empty")


@dataclass(frozen=True)
class InsertItem:
    """
    Insert one or more item fragments.

    Attributes:
        raw_fragment: Item text in the document's syntax
        after_index: The new item lands at ``after_index + 1``;
            -1 inserts at the front, None appends
    """

    raw_fragment: str
    after_index: Optional[int] = None


@dataclass(frozen=True)
class ReorderItems:
    """
    Permute items.

    Attributes:
        new_order: Permutation of item indices; slot ``i`` receives the
            item currently at ``new_order[i]``
    """

    new_order: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "new_order", tuple(self.new_order))


@dataclass(frozen=True)
class ReplaceWhole:
    """Replace the whole document text."""

    raw_text: str


EditOperation = Union[SetCorrectResponse, InsertItem, ReorderItems, ReplaceWhole]


def move_order(count: int, old_index: int, new_index: int) -> Tuple[int, ...]:
    """
    Permutation that moves the item at ``old_index`` to ``new_index``.

    Example:
        >>> move_order(4, 0, 2)
        (1, 2, 0, 3)
    """
    if not (0 <= old_index < count and 0 <= new_index < count):
        raise ValueError(f"move {old_index} -> {new_index} is out of range for {count} items")
    order: List[int] = list(range(count))
    moved = order.pop(old_index)
    order.insert(new_index, moved)
    return tuple(order)
