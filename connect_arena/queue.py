"""Matchmaking queue for Connect Four sessions."""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from connect_arena.errors import AlreadyQueued

logger = logging.getLogger(__name__)


@dataclass
class QueueEntry:
    """
    Represents a participant waiting to be paired.

    :param participant_id: Stable participant identifier
    :type participant_id: str
    :param handle: Display handle of the participant
    :type handle: str
    :param connection_id: Connection the participant joined from
    :type connection_id: str
    :param enqueued_at: Unix time the entry was created
    :type enqueued_at: float
    """

    participant_id: str
    handle: str
    connection_id: str
    enqueued_at: float = field(default_factory=time.time)


@dataclass
class QueueJoinResult:
    """
    Outcome of a join request.

    :param entry: The entry that joined
    :type entry: QueueEntry
    :param paired_with: Oldest waiting entry if a pairing happened, None if queued
    :type paired_with: Optional[QueueEntry]
    """

    entry: QueueEntry
    paired_with: Optional[QueueEntry] = None

    @property
    def paired(self) -> bool:
        return self.paired_with is not None


class MatchmakingQueue:
    """
    FIFO queue pairing waiting participants.

    A participant id may hold at most one entry; a second join before the
    first one resolves is rejected with ``AlreadyQueued``. Entries leave the
    queue by pairing, by their timeout firing, or by their connection closing.
    """

    def __init__(self) -> None:
        """Initialize the matchmaking queue."""
        self.entries: "OrderedDict[str, QueueEntry]" = OrderedDict()

    def join(self, entry: QueueEntry) -> QueueJoinResult:
        """
        Pair with the oldest waiting entry, or wait.

        :param entry: Entry for the joining participant
        :type entry: QueueEntry
        :return: Join result; ``paired_with`` is set when a pairing happened
        :rtype: QueueJoinResult
        :raises AlreadyQueued: If the participant already has a queue entry
        """
        if entry.participant_id in self.entries:
            raise AlreadyQueued(f"{entry.handle} is already waiting for an opponent")

        if self.entries:
            _, oldest = self.entries.popitem(last=False)
            logger.debug(f"[Queue] Pairing {oldest.participant_id} with {entry.participant_id}")
            return QueueJoinResult(entry=entry, paired_with=oldest)

        self.entries[entry.participant_id] = entry
        logger.debug(f"[Queue] {entry.participant_id} waiting. Queue size: {len(self.entries)}")
        return QueueJoinResult(entry=entry)

    def on_timeout_expire(self, participant_id: str, enqueued_at: Optional[float] = None) -> Optional[QueueEntry]:
        """
        Resolve a matchmaking countdown.

        A countdown armed for an earlier entry of the same participant
        (identified by ``enqueued_at``) leaves the current entry alone.

        :param participant_id: Participant whose countdown fired
        :type participant_id: str
        :param enqueued_at: Enqueue time of the entry the countdown was armed for
        :type enqueued_at: Optional[float]
        :return: The removed entry if it was still waiting, None if already resolved
        :rtype: Optional[QueueEntry]
        """
        entry = self.entries.get(participant_id)
        if entry is None or (enqueued_at is not None and entry.enqueued_at != enqueued_at):
            logger.debug(f"[Queue] Timeout for {participant_id} ignored, entry already resolved")
            return None
        del self.entries[participant_id]
        return entry

    def remove_connection(self, connection_id: str) -> Optional[QueueEntry]:
        """
        Drop the entry that joined from a connection that has closed.

        :param connection_id: Closed connection identifier
        :type connection_id: str
        :return: Removed entry, or None if that connection was not queued
        :rtype: Optional[QueueEntry]
        """
        entry = self.find_connection(connection_id)
        if entry is None:
            return None
        del self.entries[entry.participant_id]
        logger.debug(f"[Queue] Removed {entry.participant_id} after connection {connection_id} closed")
        return entry

    def find_connection(self, connection_id: str) -> Optional[QueueEntry]:
        for entry in self.entries.values():
            if entry.connection_id == connection_id:
                return entry
        return None

    def get_queue_size(self) -> int:
        """
        Get the number of waiting entries.

        :return: Queue size
        :rtype: int
        """
        return len(self.entries)
