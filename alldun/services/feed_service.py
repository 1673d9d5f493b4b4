from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Iterable

from alldun.domain.entities import Comment, FeedPost, ImageRef
from alldun.domain.enums import CompletionStyle
from alldun.domain.errors import NotFound, ValidationError
from alldun.domain.ports import Clock, SystemClock

logger = logging.getLogger(__name__)


class FeedStore:
    """In-memory feed; one post per task, newest first."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._posts: list[FeedPost] = []

    # ----- FeedSink -----
    def record_start(
        self,
        task_id: str,
        owner_id: str,
        title: str,
        style: CompletionStyle,
        image: ImageRef,
        timestamp: datetime,
        late: bool,
    ) -> None:
        post = self.get_post(task_id)
        if post is None:
            post = FeedPost(
                id=uuid.uuid4().hex,
                task_id=task_id,
                owner_id=owner_id,
                title=title,
                completion_style=CompletionStyle(style),
                created_at=timestamp,
            )
            self._posts.insert(0, post)
            logger.info("Feed post created for task %s late=%s", task_id, late)
        else:
            logger.info("Feed post for task %s updated with a new start image late=%s", task_id, late)
        post.start_image = image
        post.start_captured_at = timestamp
        post.start_late = late

    def record_completion(
        self,
        task_id: str,
        image: ImageRef,
        timestamp: datetime,
        late: bool,
    ) -> None:
        post = self.get_post(task_id)
        if post is None:
            logger.warning("No feed post for task %s; completion image dropped", task_id)
            return
        post.completion_image = image
        post.completion_captured_at = timestamp
        post.completion_late = late
        logger.info("Feed post for task %s completed late=%s", task_id, late)

    # ----- Queries -----
    def get_post(self, task_id: str) -> FeedPost | None:
        return next((p for p in self._posts if p.task_id == task_id), None)

    def all_posts(self) -> list[FeedPost]:
        return list(self._posts)

    def posts_for(self, viewer_id: str, friend_ids: Iterable[str] = ()) -> list[FeedPost]:
        visible = {viewer_id, *friend_ids}
        posts = [p for p in self._posts if p.owner_id in visible]
        return sorted(posts, key=lambda p: p.created_at, reverse=True)

    # ----- Reactions -----
    def toggle_like(self, task_id: str, user_id: str) -> bool:
        post = self._require(task_id)
        if user_id in post.liked_by:
            post.liked_by.discard(user_id)
            return False
        post.liked_by.add(user_id)
        return True

    def add_comment(self, task_id: str, user_id: str, text: str) -> Comment:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Cannot add an empty comment.")
        post = self._require(task_id)
        comment = Comment(
            id=uuid.uuid4().hex,
            user_id=user_id,
            text=text,
            created_at=self._clock.now(),
        )
        post.comments.append(comment)
        logger.debug("Comment by %s on task %s (%d total)", user_id, task_id, len(post.comments))
        return comment

    def _require(self, task_id: str) -> FeedPost:
        post = self.get_post(task_id)
        if post is None:
            raise NotFound(f"No feed post for task {task_id}.")
        return post
