from __future__ import annotations

import pytest

from fission.core.schema import TokenDescriptor
from fission.ledger import TokenRegistry

FAR_FUTURE = 4_000_000_000


@pytest.fixture
def registry() -> TokenRegistry:
    """Denom A (multiplier 2, never matures) and B (multiplier 1, matures at t=1000)."""
    return TokenRegistry(
        descriptors=(
            TokenDescriptor(
                denom="A", type="yield", multiplier=2, maturity_epoch_seconds=FAR_FUTURE
            ),
            TokenDescriptor(
                denom="B", type="principal", multiplier=1, maturity_epoch_seconds=1_000
            ),
        ),
        excluded_addresses=frozenset({"amm"}),
    )
