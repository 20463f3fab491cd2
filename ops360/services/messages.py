from __future__ import annotations

from ops360.domain.entities import CommentEntity, TaskEntity
from ops360.domain.enums import NotificationKind

SIGNATURE = "Best regards,\nOps360"


def render_message(
    kind: NotificationKind,
    task: TaskEntity,
    comment: CommentEntity | None = None,
    commenter_name: str = "",
) -> tuple[str, str]:
    """Subject and plain-text body for a lifecycle notification."""
    title = task.title

    if kind == NotificationKind.ACTIVATED:
        subject = f'Task Active: "{title}"'
        lines = [
            f'The task "{title}" is now active.',
            f"It is due on {task.due_date:%Y-%m-%d %H:%M}.",
        ]
    elif kind == NotificationKind.REMINDER:
        subject = f'Reminder: Task "{title}" is due soon'
        lines = [
            f'This is a reminder that the task "{title}" is due on {task.due_date:%Y-%m-%d}.',
            "Please ensure that the necessary actions are taken before the deadline.",
        ]
    elif kind == NotificationKind.MISSED:
        subject = f'Missed Task: "{title}"'
        lines = [
            f'The task "{title}" has been marked as missed because the due date '
            "has passed and it was not completed.",
            "Please take appropriate actions as needed.",
        ]
    elif kind == NotificationKind.COMPLETED:
        subject = f'Task Completed: "{title}"'
        lines = [
            f'The task "{title}" has been successfully completed.',
            "Thank you for your effort!",
        ]
    elif kind == NotificationKind.COMMENT_ADDED:
        if comment is None:
            raise ValueError("comment_added notifications need the comment")
        subject = f"New Comment on Task: {title}"
        lines = [
            f'{commenter_name or "Someone"} has added a new comment to the task "{title}":',
            f'"{comment.text}"',
            "Please check the task for further details.",
        ]
    else:
        raise ValueError(f"Unknown notification kind: {kind}")

    body = "\n\n".join(["Dear user,", *lines, SIGNATURE])
    return subject, body
