"""Randomized, schema-valid request payloads and synthetic identifiers.

Every generator takes an optional ``random.Random`` so tests can seed the
sequence; when omitted the module-level generator is used.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from wmsload._internal.errors import EmptyPoolError, InvalidRangeError

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")

_BASE36 = string.digits + string.ascii_lowercase
_ID_SUFFIX_LENGTH = 6

ITEMS_PER_PACKAGE = (1, 3)
PACKAGE_ITEM_QUANTITY = (1, 5)
PICK_QUANTITY = (1, 3)
PICK_LIST_STATUSES = ("PENDING", "IN_PROGRESS", "COMPLETED")


@dataclass(frozen=True)
class TestDataPool:
    """Candidate values sampled when building payloads.

    Read-only for the duration of a run.
    """

    __test__ = False  # not a pytest test class

    picker_ids: tuple[str, ...] = (
        "picker-001",
        "picker-002",
        "picker-003",
        "picker-004",
        "picker-005",
    )
    sku_codes: tuple[str, ...] = ("SKU-001", "SKU-002", "SKU-003", "SKU-004", "SKU-005")
    bin_locations: tuple[str, ...] = ("A-01-01", "A-01-02", "B-02-01", "B-02-02", "C-03-01")
    order_types: tuple[str, ...] = ("STANDARD", "PRIORITY", "EXPRESS")
    cities: tuple[str, ...] = ("New York", "Los Angeles", "Chicago", "Houston", "Phoenix")
    states: tuple[str, ...] = ("NY", "CA", "IL", "TX", "AZ")
    countries: tuple[str, ...] = ("USA",)


DEFAULT_POOL = TestDataPool()


def random_element(pool: Sequence[T], rng: random.Random | None = None) -> T:
    """Pick one element of *pool* uniformly at random.

    Raises:
        EmptyPoolError: If *pool* is empty.
    """
    if not pool:
        msg = "Cannot pick a random element from an empty pool"
        raise EmptyPoolError(msg)
    return (rng or random).choice(pool)  # noqa: S311


def random_int(min_value: int, max_value: int, rng: random.Random | None = None) -> int:
    """Return a random integer in ``[min_value, max_value]`` (inclusive).

    Raises:
        InvalidRangeError: If ``min_value > max_value``.
    """
    if min_value > max_value:
        msg = f"Invalid range: min {min_value} is greater than max {max_value}"
        raise InvalidRangeError(msg)
    return (rng or random).randint(min_value, max_value)  # noqa: S311


def generate_package_payload(
    pool: TestDataPool = DEFAULT_POOL,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Build a package-creation request body.

    The package holds 1-3 line items, each with a quantity in [1, 5], and a
    synthetic address drawn from the pool.

    Args:
        pool: Value pool to sample SKUs, order types and address parts from.
        rng: Optional random source.

    Returns:
        A JSON-serializable dict using the API's camelCase field names.
    """
    item_count = random_int(*ITEMS_PER_PACKAGE, rng=rng)
    items = [
        {
            "skuCode": random_element(pool.sku_codes, rng),
            "quantity": random_int(*PACKAGE_ITEM_QUANTITY, rng=rng),
        }
        for _ in range(item_count)
    ]
    return {
        "orderType": random_element(pool.order_types, rng),
        "street": f"{random_int(1, 9999, rng=rng)} Test Street",
        "city": random_element(pool.cities, rng),
        "state": random_element(pool.states, rng),
        "postalCode": str(random_int(10000, 99999, rng=rng)),
        "country": random_element(pool.countries, rng),
        "items": items,
    }


def generate_pick_confirmation_payload(
    pool: TestDataPool = DEFAULT_POOL,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Build a confirm-pick request body with a quantity in [1, 3]."""
    return {
        "skuCode": random_element(pool.sku_codes, rng),
        "quantity": random_int(*PICK_QUANTITY, rng=rng),
        "binLocation": random_element(pool.bin_locations, rng),
    }


def _random_suffix(rng: random.Random | None) -> str:
    source = rng or random
    return "".join(source.choice(_BASE36) for _ in range(_ID_SUFFIX_LENGTH))  # noqa: S311


def generate_order_id(prefix: str = "ord", rng: random.Random | None = None) -> str:
    """Return an opaque test order ID like ``ord-1718000000000-k3j9xq``.

    IDs are collision-avoiding only. They are not expected to reference a
    persisted order.
    """
    return f"{prefix}-{int(time.time() * 1000)}-{_random_suffix(rng)}"


def generate_pick_list_id(prefix: str = "pl", rng: random.Random | None = None) -> str:
    """Return an opaque test pick-list ID like ``pl-1718000000000-0a7bzz``."""
    return f"{prefix}-{int(time.time() * 1000)}-{_random_suffix(rng)}"
