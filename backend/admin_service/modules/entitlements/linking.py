"""
Mapping engine shared by the Module↔Feature and Plan↔Module relations.

Linking computes ``requested - already active`` and writes only that delta.
Unlinking targets the active rows among the requested ids and hands them to
an unlink strategy, which either deletes them or flips ``is_active`` off.

All writes of one call happen in a single transaction. A failure while
staging or committing rolls the whole batch back and propagates; a unique
violation on the ``(parent, child)`` pair means a concurrent request linked
the same child first and is reported as a conflict.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from admin_service.core.errors import ConflictError
from .repository import LinkRelation, MappingRepository


logger = logging.getLogger(__name__)


class LinkStatus(str, enum.Enum):
    APPLIED = "applied"
    NOOP = "noop"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class LinkPolicy:
    # True: unknown ids are dropped, fail only when none resolve.
    # False: any unknown id fails the whole call.
    allow_partial_match: bool


PARTIAL_MATCH = LinkPolicy(allow_partial_match=True)
STRICT_MATCH = LinkPolicy(allow_partial_match=False)


@dataclass
class LinkResult:
    status: LinkStatus
    added: list[str] = field(default_factory=list)
    already_present: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def added_count(self) -> int:
        return len(self.added)


@dataclass
class UnlinkResult:
    status: LinkStatus
    removed_ids: list[str] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return len(self.removed_ids)


class UnlinkStrategy(Protocol):
    name: str

    def unlink(self, repo: MappingRepository, rows: Sequence) -> None: ...


class HardUnlink:
    """Mapping rows are deleted outright."""

    name = "hard"

    def unlink(self, repo: MappingRepository, rows: Sequence) -> None:
        for row in rows:
            repo.stage_delete(row)


class SoftUnlink:
    """Mapping rows stay in place with ``is_active = False``."""

    name = "soft"

    def unlink(self, repo: MappingRepository, rows: Sequence) -> None:
        for row in rows:
            repo.stage_deactivate(row)


def unique_ids(ids: Sequence[str]) -> list[str]:
    """Drop duplicates while keeping the caller's order."""
    seen: set[str] = set()
    ordered: list[str] = []
    for value in ids:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class MappingEngine:
    def __init__(
        self,
        db: Session,
        relation: LinkRelation,
        unlink_strategy: UnlinkStrategy,
        repo: MappingRepository | None = None,
    ):
        self.db = db
        self.relation = relation
        self.unlink_strategy = unlink_strategy
        self.repo = repo or MappingRepository(db, relation)

    def resolve(self, child_ids: Sequence[str]) -> tuple[list[str], list[str]]:
        """Split requested ids into (resolved, unresolved), both in request order."""
        requested = unique_ids(child_ids)
        existing = self.repo.existing_child_ids(requested)
        resolved = [cid for cid in requested if cid in existing]
        unresolved = [cid for cid in requested if cid not in existing]
        return resolved, unresolved

    def link(self, parent_id: str, child_ids: Sequence[str], policy: LinkPolicy) -> LinkResult:
        resolved, unresolved = self.resolve(child_ids)
        if not resolved or (unresolved and not policy.allow_partial_match):
            return LinkResult(status=LinkStatus.UNRESOLVED, unresolved=unresolved)

        rows = {self.repo.child_id_of(row): row for row in self.repo.find_links(parent_id, resolved)}
        already_present = [cid for cid in resolved if cid in rows and rows[cid].is_active]
        new_ids = [cid for cid in resolved if cid not in already_present]
        if not new_ids:
            return LinkResult(
                status=LinkStatus.NOOP,
                already_present=already_present,
                unresolved=unresolved,
            )

        try:
            for cid in new_ids:
                row = rows.get(cid)
                if row is not None:
                    self.repo.stage_reactivate(row)
                else:
                    self.repo.stage_link(parent_id, cid)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                "Concurrent link on %s for parent %s: %s", self.relation.name, parent_id, exc
            )
            raise ConflictError(
                "Mapping changed concurrently, retry the request",
                details={"parent_id": parent_id, "child_ids": new_ids},
            ) from exc
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Linked %d child(ren) on %s for parent %s", len(new_ids), self.relation.name, parent_id
        )
        return LinkResult(
            status=LinkStatus.APPLIED,
            added=new_ids,
            already_present=already_present,
            unresolved=unresolved,
        )

    def unlink(self, parent_id: str, child_ids: Sequence[str]) -> UnlinkResult:
        requested = unique_ids(child_ids)
        rows = self.repo.find_links(parent_id, requested, active_only=True)
        if not rows:
            return UnlinkResult(status=LinkStatus.NOOP)

        linked = {self.repo.child_id_of(row) for row in rows}
        removed_ids = [cid for cid in requested if cid in linked]
        try:
            self.unlink_strategy.unlink(self.repo, rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Unlinked (%s) %d child(ren) on %s for parent %s",
            self.unlink_strategy.name,
            len(removed_ids),
            self.relation.name,
            parent_id,
        )
        return UnlinkResult(status=LinkStatus.APPLIED, removed_ids=removed_ids)
