"""Local deal collection owned by the reconciler.

The store is the single place where a deal's local state changes. It
keeps deals in insertion order (the order the data-fetch collaborator
delivered them), which is the order columns display them in.

Each state change issued by a command stamps the deal with a fresh
token. The store also remembers the last state the remote store is
known to hold (the confirmed state, from a load or an accepted
command). When a remote call resolves, its outcome only touches the
local snapshot if no newer command for the deal is still in flight, so
a slow response for an older move can never overwrite a newer one, and
a rollback never lands on a state that was only applied locally.
"""

import itertools
import logging
from typing import Dict, Iterable, List, Optional

from src.dealflow.board.models import DealId, DealSnapshot
from src.dealflow.errors import DealNotFoundError


logger = logging.getLogger(__name__)


class DealStore:
    """Insertion-ordered collection of deal snapshots keyed by id.

    Example:
        >>> store = DealStore([DealSnapshot(id=7, state="lead")])
        >>> store.set_state(7, "confirmed").state
        'confirmed'
    """

    def __init__(self, deals: Iterable[DealSnapshot] = ()):
        self._deals: Dict[DealId, DealSnapshot] = {}
        self._tokens: Dict[DealId, int] = {}
        self._pending: Dict[DealId, Dict[int, str]] = {}
        self._confirmed: Dict[DealId, str] = {}
        self._confirmed_tokens: Dict[DealId, int] = {}
        self._counter = itertools.count(1)
        self.load(deals)

    def __len__(self) -> int:
        return len(self._deals)

    def __contains__(self, deal_id: DealId) -> bool:
        return deal_id in self._deals

    def load(self, deals: Iterable[DealSnapshot]) -> None:
        """Replace the whole collection (e.g. after a refetch).

        Loaded states become the confirmed states. Tokens of deals that
        survive the reload are kept, so responses for commands issued
        before the reload are still matched.
        """
        self._deals = {}
        for deal in deals:
            self._deals[deal.id] = deal
        self._confirmed = {deal_id: deal.state for deal_id, deal in self._deals.items()}
        for book in (self._tokens, self._pending, self._confirmed_tokens):
            for deal_id in [d for d in book if d not in self._deals]:
                del book[deal_id]

    def upsert(self, deal: DealSnapshot) -> None:
        """Insert a deal, or replace it in place keeping its position.

        The deal's state becomes its confirmed state.
        """
        self._deals[deal.id] = deal
        self._confirmed[deal.id] = deal.state

    def remove(self, deal_id: DealId) -> Optional[DealSnapshot]:
        for book in (self._tokens, self._pending, self._confirmed, self._confirmed_tokens):
            book.pop(deal_id, None)
        return self._deals.pop(deal_id, None)

    def get(self, deal_id: DealId) -> Optional[DealSnapshot]:
        return self._deals.get(deal_id)

    def require(self, deal_id: DealId) -> DealSnapshot:
        """Get a deal or raise.

        Raises:
            DealNotFoundError: If the deal is not in the store.
        """
        deal = self._deals.get(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal

    def set_state(self, deal_id: DealId, state: str) -> DealSnapshot:
        """Move a deal to another state locally.

        Raises:
            DealNotFoundError: If the deal is not in the store.
        """
        updated = self.require(deal_id).with_state(state)
        self._deals[deal_id] = updated
        return updated

    def deals(self) -> List[DealSnapshot]:
        return list(self._deals.values())

    def issue_token(self, deal_id: DealId) -> int:
        """Stamp a deal with a new command token and return it.

        The deal's current local state is recorded as the command's
        optimistic target while the command is in flight.
        """
        token = next(self._counter)
        self._tokens[deal_id] = token
        deal = self._deals.get(deal_id)
        if deal is not None:
            self._pending.setdefault(deal_id, {})[token] = deal.state
        return token

    def is_latest(self, deal_id: DealId, token: int) -> bool:
        """Whether `token` is the most recent command token for a deal."""
        return self._tokens.get(deal_id) == token

    def is_pending(self, deal_id: DealId, token: int) -> bool:
        return token in self._pending.get(deal_id, {})

    def confirmed_state(self, deal_id: DealId) -> Optional[str]:
        """Last state the remote store is known to hold for a deal."""
        return self._confirmed.get(deal_id)

    def confirm(self, deal_id: DealId, token: int, snapshot: DealSnapshot) -> bool:
        """Settle a command the remote store accepted.

        The snapshot becomes the deal's confirmed state unless a newer
        command was confirmed first. It replaces the local snapshot only
        when no newer command for the deal is still in flight.

        Returns:
            True if the local snapshot was replaced.
        """
        if not self._settle(deal_id, token):
            return False

        if token <= self._confirmed_tokens.get(deal_id, 0):
            return False
        self._confirmed[deal_id] = snapshot.state
        self._confirmed_tokens[deal_id] = token

        if self._has_newer_pending(deal_id, token):
            return False
        self._deals[deal_id] = snapshot
        return True

    def revert(self, deal_id: DealId, token: int) -> Optional[DealSnapshot]:
        """Settle a command the remote store rejected.

        The local state falls back to the optimistic target of the newest
        older command still in flight, or to the confirmed state when
        none is. Nothing changes when a newer command is in flight or
        was already confirmed.

        Returns:
            The restored snapshot, or None if nothing was restored.
        """
        if not self._settle(deal_id, token):
            return None
        if self._has_newer_pending(deal_id, token):
            return None
        if self._confirmed_tokens.get(deal_id, 0) > token:
            return None

        older = self._pending.get(deal_id, {})
        if older:
            target = older[max(older)]
        else:
            target = self._confirmed[deal_id]
        return self.set_state(deal_id, target)

    def _settle(self, deal_id: DealId, token: int) -> bool:
        pending = self._pending.get(deal_id, {})
        if deal_id not in self._deals or token not in pending:
            return False
        del pending[token]
        return True

    def _has_newer_pending(self, deal_id: DealId, token: int) -> bool:
        return any(t > token for t in self._pending.get(deal_id, {}))
