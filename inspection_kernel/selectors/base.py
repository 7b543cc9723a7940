"""
Module: inspection_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    are the read side of the engine: they gather validation facts, current
    state, history, statistics and dashboard listings without mutating anything.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ value objects.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - Shop scoping: every query filters by shop_id, so rows belonging to another
      shop are indistinguishable from missing rows.
    - DTO return convention: Selectors return frozen dataclasses or scalars,
      NOT raw ORM model instances.
    - Session ownership: the caller owns the session and its transaction, so a
      selector called inside the executor sees the locked, in-transaction view.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
