from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import Executor, Future

from ops360.domain.entities import CommentEntity, Reference, TaskEntity, Unresolved, UserEntity
from ops360.domain.enums import NotificationKind

from .directory import NotificationSink, UserDirectory
from .messages import render_message

logger = logging.getLogger(__name__)


def resolve_references(user_ids: Iterable[int], users: UserDirectory) -> list[Reference]:
    ids = list(user_ids)
    found = {user.id: user for user in users.find_by_ids(ids)}
    return [found.get(user_id, Unresolved(user_id)) for user_id in ids]


def collect_recipients(references: Iterable[Reference]) -> list[str]:
    """Unique email addresses in first-seen order.

    Unresolved references and users without an address are skipped.
    """
    addresses: list[str] = []
    for reference in references:
        if isinstance(reference, Unresolved):
            continue
        if isinstance(reference, UserEntity) and reference.email and reference.email not in addresses:
            addresses.append(reference.email)
    return addresses


class NotificationDispatcher:
    def __init__(
        self,
        users: UserDirectory,
        sink: NotificationSink,
        executor: Executor | None = None,
    ) -> None:
        self._users = users
        self._sink = sink
        self._executor = executor

    def notify(
        self,
        task: TaskEntity,
        kind: NotificationKind,
        extra_user_ids: Iterable[int] = (),
        comment: CommentEntity | None = None,
    ) -> Future | int:
        """Send ``kind`` about ``task`` to everyone involved in it.

        With an executor the delivery is queued and a future is returned;
        otherwise it runs inline and the number of messages sent is returned.
        Failures are logged, never raised.
        """
        extra = tuple(extra_user_ids)
        if self._executor is not None:
            return self._executor.submit(self._deliver, task, kind, extra, comment)
        return self._deliver(task, kind, extra, comment)

    def recipients(self, task: TaskEntity, extra_user_ids: Iterable[int] = ()) -> list[str]:
        user_ids = [*task.assignees, task.creator_id, *task.followers, *extra_user_ids]
        return collect_recipients(resolve_references(user_ids, self._users))

    def _deliver(
        self,
        task: TaskEntity,
        kind: NotificationKind,
        extra_user_ids: tuple[int, ...],
        comment: CommentEntity | None,
    ) -> int:
        try:
            addresses = self.recipients(task, extra_user_ids)
            commenter_name = self._commenter_name(comment) if comment else ""
            subject, body = render_message(kind, task, comment=comment, commenter_name=commenter_name)
        except Exception:  # noqa: BLE001
            logger.exception("Could not prepare %s notification for task %s", kind, task.id)
            return 0

        sent = 0
        for address in addresses:
            try:
                delivered = self._sink.send(address, subject, body)
            except Exception:  # noqa: BLE001
                logger.exception("Sending %s notification for task %s to %s failed", kind, task.id, address)
                continue
            if delivered:
                sent += 1
            else:
                logger.warning("Sink rejected %s notification for task %s to %s", kind, task.id, address)

        logger.info("Sent %d/%d %s notification(s) for task %s", sent, len(addresses), kind, task.id)
        return sent

    def _commenter_name(self, comment: CommentEntity) -> str:
        for reference in resolve_references([comment.author_id], self._users):
            if isinstance(reference, UserEntity):
                return reference.display_name
        return ""
