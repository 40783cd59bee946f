"""
Lazy view of the delegation graph.

Edges are read from the token registry on demand and never cached, since the
registry may be arbitrarily large and mutated by other actors between reads.
"""

import logging

logger = logging.getLogger(__name__)
from typing import List, Optional

from ..errors.exceptions import NotFoundError
from .core import is_null_address
from .registries import TokenRegistry, require_registry


class DelegationGraph:
    """Adjacency over delegate and delegator edges, queried per call.

    An address that vanishes from the registry mid-walk is treated as the end
    of its chain rather than an error.
    """

    def __init__(self, token_registry: Optional[TokenRegistry]):
        self._token_registry = token_registry

    @property
    def tokens(self) -> TokenRegistry:
        return require_registry(self._token_registry, "token")

    def delegate_of(self, address: str) -> Optional[str]:
        """Forward edge of an address, or None when its chain ends there."""
        try:
            delegate = self.tokens.get_delegate(address)
        except NotFoundError:
            logger.debug(f"{address} disappeared while reading its delegate")
            return None
        if is_null_address(delegate) or delegate == address:
            return None
        return delegate

    def delegators_of(self, address: str) -> List[str]:
        """Backward edges of an address, self-references and repeats removed."""
        try:
            delegators = self.tokens.get_delegators_of(address)
        except NotFoundError:
            logger.debug(f"{address} disappeared while reading its delegators")
            return []
        seen = set()
        result = []
        for delegator in delegators:
            if delegator == address or is_null_address(delegator) or delegator in seen:
                continue
            seen.add(delegator)
            result.append(delegator)
        return result

    def balance_of(self, address: str) -> int:
        try:
            return self.tokens.balance_of(address)
        except NotFoundError:
            return 0
