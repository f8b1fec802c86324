"""Run-scoped registry of people admitted to the shared-person pool."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from ..common.types import PersonRecord

LOGGER = logging.getLogger("movie_catalog.loader.identity")


@dataclass(eq=False, slots=True)
class SharedPerson:
    """Single shared record standing in for every occurrence of a person."""

    external_id: int
    name: str
    gender: int = 0
    stored_id: int | None = field(default=None)

    @classmethod
    def from_record(cls, person: PersonRecord) -> "SharedPerson":
        return cls(
            external_id=person.external_id, name=person.name, gender=person.gender
        )

    @property
    def is_bound(self) -> bool:
        return self.stored_id is not None

    def bind(self, stored_id: int) -> None:
        """Attach the id of the stored row backing this person."""

        if self.stored_id is not None and self.stored_id != stored_id:
            raise ValueError(
                f"Person {self.external_id} is already bound to row {self.stored_id}"
            )
        self.stored_id = stored_id

    def to_record(self) -> PersonRecord:
        return PersonRecord(
            external_id=self.external_id, name=self.name, gender=self.gender
        )


@dataclass(frozen=True, slots=True)
class Admission:
    """Outcome of :meth:`IdentityDeduplicator.admit`."""

    is_first: bool
    handle: SharedPerson


class IdentityDeduplicator:
    """Ensure each external identity maps to one shared handle for the run.

    Admission only shares identity; it never changes which movies a person
    belongs to.  Callers replace each cast/director entry with the returned
    handle and keep the entry, so a person credited on several movies stays
    credited on all of them.
    """

    def __init__(self) -> None:
        self._registry: dict[int, SharedPerson] = {}
        self._lock = threading.Lock()

    def admit(self, person: PersonRecord) -> Admission:
        """Register *person* if unseen and return the shared handle."""

        with self._lock:
            handle = self._registry.get(person.external_id)
            if handle is not None:
                return Admission(is_first=False, handle=handle)
            handle = SharedPerson.from_record(person)
            self._registry[person.external_id] = handle
        LOGGER.debug("Admitted person %s (%s).", person.external_id, person.name)
        return Admission(is_first=True, handle=handle)

    def get(self, external_id: int) -> SharedPerson | None:
        with self._lock:
            return self._registry.get(external_id)

    def handles(self) -> list[SharedPerson]:
        with self._lock:
            return list(self._registry.values())

    def __contains__(self, external_id: object) -> bool:
        with self._lock:
            return external_id in self._registry

    def __len__(self) -> int:
        with self._lock:
            return len(self._registry)


__all__ = ["SharedPerson", "Admission", "IdentityDeduplicator"]
