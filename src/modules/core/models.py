"""Base abstract models and change-feed infrastructure.

Provides:
- ``BaseModel``: UUIDv7 primary key + created_at / updated_at timestamps.
- ``ChangeLogCounter``: per-topic sequence allocator for the change log.
- ``ChangeLogEntry``: durable, ordered log of committed changes, written in
  the same transaction as the data that produced them (transactional
  outbox) and served to polling clients as the live change feed.

Change-log entries carry a per-topic ``sequence`` in commit order; it is
the feed cursor.
"""

from __future__ import annotations

import uuid6
from django.db import models, transaction

# ---------------------------------------------------------------------------
# BaseModel
# ---------------------------------------------------------------------------


class BaseModel(models.Model):
    """Abstract base with UUIDv7 PK and timestamp bookkeeping."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid6.uuid7,
        editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        """Ensure ``updated_at`` is refreshed even when ``update_fields`` is passed."""
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Change feed
# ---------------------------------------------------------------------------


class ChangeLogCounter(models.Model):
    """Last sequence number handed out per change-log topic."""

    topic = models.CharField(max_length=100, primary_key=True)
    value = models.PositiveBigIntegerField(default=0)

    class Meta:
        db_table = "change_log_counter"

    def __str__(self) -> str:
        return f"{self.topic}@{self.value}"

    @classmethod
    def next_value(cls, topic: str) -> int:
        """Increment and return the counter for ``topic``.

        Must run inside ``transaction.atomic()``: the counter row stays
        locked until the surrounding transaction ends, so a second writer
        on the same topic waits and always draws the higher number.
        """
        counter, _ = cls.objects.select_for_update().get_or_create(topic=topic)
        counter.value += 1
        counter.save(update_fields=["value"])
        return counter.value


class ChangeLogEntry(BaseModel):
    """One committed change of an aggregate, in commit order.

    ``payload`` carries the full record snapshot for inserts/updates and
    ``None`` for deletes.  Entries are immutable once written.

    Workflow:
    1. Repository creates the entry inside ``transaction.atomic()``; the
       entry draws the next ``sequence`` of its topic.
    2. Clients poll ``sequence > cursor`` ordered by ``sequence``.
    3. In-process subscribers get the same change via the notifier once
       the transaction commits.

    Writers on one topic are serialised by the counter row lock, so a
    transaction that commits later always carries a higher sequence.
    UUIDv7 ids carry no such guarantee: they are drawn before the commit.
    """

    topic = models.CharField(max_length=100)
    sequence = models.PositiveBigIntegerField(editable=False)
    kind = models.CharField(max_length=20)
    aggregate_id = models.CharField(max_length=255)
    version = models.PositiveIntegerField(default=0)
    payload = models.JSONField(null=True, blank=True, default=None)

    class Meta:
        db_table = "change_log"
        ordering = ["sequence", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["topic", "sequence"],
                name="change_log_topic_sequence_uniq",
            ),
        ]
        indexes = [
            models.Index(
                fields=["aggregate_id"],
                name="change_log_aggregate_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.topic}.{self.kind} [{self.aggregate_id}] v{self.version}"

    def save(self, *args, **kwargs) -> None:
        if self._state.adding and self.sequence is None:
            with transaction.atomic(using=kwargs.get("using")):
                self.sequence = ChangeLogCounter.next_value(self.topic)
                super().save(*args, **kwargs)
            return
        super().save(*args, **kwargs)
