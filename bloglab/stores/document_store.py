"""Document adapter: each post is one document embedding its likes and comments.

Document shapes::

    user: {_id, username, email, password_hash,
           profile: {first_name, last_name, bio, avatar_url},
           created_at, updated_at, is_active}

    post: {_id, title, body, image_url, slug,
           author: {user_id, username, display_name},
           likes: [{like_id, user_id, username, liked_at}],
           comments: [{comment_id, user_id, username, content, created_at,
                       updated_at, is_deleted, replies: [...]}],
           stats: {like_count, comment_count, view_count},
           created_at, updated_at, is_published}

The author block is copied when the post is inserted and never refreshed,
so later renames do not reach existing posts. Documents live in process
memory; a transaction holds the store lock and restores a snapshot on
failure.
"""

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, Iterator, List, Optional, Tuple
import logging

from bloglab.db.base import utcnow
from bloglab.exceptions import ConflictError, InvalidNestingError, NotFoundError, ValidationError
from bloglab.stores.base import BackingStore, EntityKind, SortSpec, matches_filters

logger = logging.getLogger(__name__)

# Flat field name -> path inside the document
USER_PATHS = {
    "first_name": ("profile", "first_name"),
    "last_name": ("profile", "last_name"),
    "bio": ("profile", "bio"),
    "avatar_url": ("profile", "avatar_url"),
}
POST_PATHS = {
    "user_id": ("author", "user_id"),
    "author_username": ("author", "username"),
    "author_display_name": ("author", "display_name"),
    "like_count": ("stats", "like_count"),
    "comment_count": ("stats", "comment_count"),
    "view_count": ("stats", "view_count"),
}
READ_ONLY_FIELDS = {"id", "post_id", "parent_comment_id"}


def _set_path(doc: Dict[str, Any], path: Tuple[str, ...], value: Any) -> None:
    for part in path[:-1]:
        doc = doc.setdefault(part, {})
    doc[path[-1]] = value


def _get_path(doc: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    for part in path:
        doc = doc[part]
    return doc


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # None sorts first, as NULL does in ascending SQL order
    return (value is not None, value)


class DocumentStore(BackingStore):
    backend_name = "document"

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._db: Dict[str, Any] = {
            "users": {},
            "posts": {},
            "sequences": {kind.value: 0 for kind in EntityKind},
        }
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"document_store_tx_{id(self)}", default=False
        )

    # ============================================================
    # Locking and transactions
    # ============================================================

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        if self._in_transaction.get():
            yield
        else:
            async with self._lock:
                yield

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["DocumentStore"]:
        if self._in_transaction.get():
            yield self
            return

        async with self._lock:
            snapshot = copy.deepcopy(self._db)
            token = self._in_transaction.set(True)
            try:
                yield self
            except BaseException:
                self._db = snapshot
                logger.warning("Document transaction rolled back")
                raise
            finally:
                self._in_transaction.reset(token)

    # ============================================================
    # Document access
    # ============================================================

    @property
    def _users(self) -> Dict[int, Dict[str, Any]]:
        return self._db["users"]

    @property
    def _posts(self) -> Dict[int, Dict[str, Any]]:
        return self._db["posts"]

    def _next_id(self, kind: EntityKind) -> int:
        self._db["sequences"][kind.value] += 1
        return self._db["sequences"][kind.value]

    def _iter_comments(self) -> Iterator[Tuple[Dict[str, Any], Dict[str, Any], Optional[Dict[str, Any]]]]:
        """Yield (post, comment, parent) for every comment and reply."""
        for post in self._posts.values():
            for comment in post["comments"]:
                yield post, comment, None
                for reply in comment["replies"]:
                    yield post, reply, comment

    def _iter_likes(self) -> Iterator[Tuple[Dict[str, Any], Dict[str, Any]]]:
        for post in self._posts.values():
            for like in post["likes"]:
                yield post, like

    def _find_comment(self, comment_id: int):
        for post, comment, parent in self._iter_comments():
            if comment["comment_id"] == comment_id:
                return post, comment, parent
        return None

    def _find_like(self, like_id: int):
        for post, like in self._iter_likes():
            if like["like_id"] == like_id:
                return post, like
        return None

    # ============================================================
    # Flattening
    # ============================================================

    @staticmethod
    def _user_record(doc: Dict[str, Any]) -> Dict[str, Any]:
        profile = doc["profile"]
        return {
            "id": doc["_id"],
            "username": doc["username"],
            "email": doc["email"],
            "password_hash": doc["password_hash"],
            "first_name": profile["first_name"],
            "last_name": profile["last_name"],
            "bio": profile.get("bio"),
            "avatar_url": profile.get("avatar_url"),
            "is_active": doc["is_active"],
            "created_at": doc["created_at"],
            "updated_at": doc["updated_at"],
        }

    @staticmethod
    def _post_record(doc: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": doc["_id"],
            "user_id": doc["author"]["user_id"],
            "title": doc["title"],
            "body": doc["body"],
            "image_url": doc.get("image_url"),
            "slug": doc["slug"],
            "is_published": doc["is_published"],
            "created_at": doc["created_at"],
            "updated_at": doc["updated_at"],
            "like_count": doc["stats"]["like_count"],
            "comment_count": doc["stats"]["comment_count"],
            "view_count": doc["stats"]["view_count"],
            "author_username": doc["author"]["username"],
            "author_display_name": doc["author"]["display_name"],
        }

    @staticmethod
    def _like_record(post: Dict[str, Any], like: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": like["like_id"],
            "user_id": like["user_id"],
            "post_id": post["_id"],
            "created_at": like["liked_at"],
        }

    @staticmethod
    def _comment_record(post: Dict[str, Any], comment: Dict[str, Any], parent: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "id": comment["comment_id"],
            "user_id": comment["user_id"],
            "post_id": post["_id"],
            "content": comment["content"],
            "parent_comment_id": parent["comment_id"] if parent is not None else None,
            "is_deleted": comment["is_deleted"],
            "created_at": comment["created_at"],
            "updated_at": comment["updated_at"],
        }

    def _records(self, kind: EntityKind) -> List[Dict[str, Any]]:
        if kind == EntityKind.USER:
            return [self._user_record(doc) for doc in self._users.values()]
        if kind == EntityKind.POST:
            return [self._post_record(doc) for doc in self._posts.values()]
        if kind == EntityKind.LIKE:
            return [self._like_record(post, like) for post, like in self._iter_likes()]
        return [self._comment_record(post, c, parent) for post, c, parent in self._iter_comments()]

    # ============================================================
    # BackingStore operations
    # ============================================================

    async def insert(self, kind: EntityKind, record: Dict[str, Any]) -> int:
        kind = EntityKind(kind)
        async with self._guard():
            now = self._clock()
            created_at = record.get("created_at") or now

            if kind == EntityKind.USER:
                return self._insert_user(record, created_at)
            if kind == EntityKind.POST:
                return self._insert_post(record, created_at)
            if kind == EntityKind.LIKE:
                return self._insert_like(record, created_at)
            return self._insert_comment(record, created_at)

    def _insert_user(self, record: Dict[str, Any], created_at: datetime) -> int:
        for field in ("username", "email"):
            if any(doc[field] == record[field] for doc in self._users.values()):
                raise ConflictError(f"{field} already taken", context={field: record[field]})

        user_id = self._next_id(EntityKind.USER)
        self._users[user_id] = {
            "_id": user_id,
            "username": record["username"],
            "email": record["email"],
            "password_hash": record["password_hash"],
            "profile": {
                "first_name": record["first_name"],
                "last_name": record["last_name"],
                "bio": record.get("bio"),
                "avatar_url": record.get("avatar_url"),
            },
            "created_at": created_at,
            "updated_at": record.get("updated_at") or created_at,
            "is_active": record.get("is_active", True),
        }
        return user_id

    def _insert_post(self, record: Dict[str, Any], created_at: datetime) -> int:
        if any(doc["slug"] == record["slug"] for doc in self._posts.values()):
            raise ConflictError("slug already taken", context={"slug": record["slug"]})

        author = self._users.get(record["user_id"])
        if author is None:
            raise NotFoundError("Author not found", context={"user_id": record["user_id"]})

        post_id = self._next_id(EntityKind.POST)
        self._posts[post_id] = {
            "_id": post_id,
            "title": record["title"],
            "body": record["body"],
            "image_url": record.get("image_url"),
            "slug": record["slug"],
            "author": {
                "user_id": author["_id"],
                "username": author["username"],
                "display_name": f"{author['profile']['first_name']} {author['profile']['last_name']}",
            },
            "likes": [],
            "comments": [],
            "stats": {
                "like_count": record.get("like_count", 0),
                "comment_count": record.get("comment_count", 0),
                "view_count": record.get("view_count", 0),
            },
            "created_at": created_at,
            "updated_at": record.get("updated_at") or created_at,
            "is_published": record.get("is_published", True),
        }
        return post_id

    def _insert_like(self, record: Dict[str, Any], created_at: datetime) -> int:
        post = self._posts.get(record["post_id"])
        if post is None:
            raise NotFoundError("Post not found", context={"post_id": record["post_id"]})
        if any(like["user_id"] == record["user_id"] for like in post["likes"]):
            raise ConflictError(
                "Like already recorded",
                context={"user_id": record["user_id"], "post_id": record["post_id"]}
            )

        user = self._users.get(record["user_id"])
        like_id = self._next_id(EntityKind.LIKE)
        post["likes"].append({
            "like_id": like_id,
            "user_id": record["user_id"],
            "username": user["username"] if user else None,
            "liked_at": created_at,
        })
        return like_id

    def _insert_comment(self, record: Dict[str, Any], created_at: datetime) -> int:
        post = self._posts.get(record["post_id"])
        if post is None:
            raise NotFoundError("Post not found", context={"post_id": record["post_id"]})

        user = self._users.get(record["user_id"])
        doc = {
            "comment_id": None,
            "user_id": record["user_id"],
            "username": user["username"] if user else None,
            "content": record["content"],
            "created_at": created_at,
            "updated_at": record.get("updated_at") or created_at,
            "is_deleted": record.get("is_deleted", False),
        }

        parent_id = record.get("parent_comment_id")
        if parent_id is None:
            doc["replies"] = []
            target = post["comments"]
        else:
            target = None
            for comment in post["comments"]:
                if comment["comment_id"] == parent_id:
                    target = comment["replies"]
                    break
                if any(reply["comment_id"] == parent_id for reply in comment["replies"]):
                    raise InvalidNestingError(
                        "Replies cannot be nested under replies",
                        context={"parent_comment_id": parent_id}
                    )
            if target is None:
                raise NotFoundError("Parent comment not found", context={"parent_comment_id": parent_id})

        doc["comment_id"] = self._next_id(EntityKind.COMMENT)
        target.append(doc)
        return doc["comment_id"]

    async def find_by_id(self, kind: EntityKind, record_id: int) -> Optional[Dict[str, Any]]:
        kind = EntityKind(kind)
        async with self._guard():
            if kind == EntityKind.USER:
                doc = self._users.get(record_id)
                return self._user_record(doc) if doc else None
            if kind == EntityKind.POST:
                doc = self._posts.get(record_id)
                return self._post_record(doc) if doc else None
            if kind == EntityKind.LIKE:
                found = self._find_like(record_id)
                return self._like_record(*found) if found else None
            found = self._find_comment(record_id)
            return self._comment_record(*found) if found else None

    async def update_fields(
        self,
        kind: EntityKind,
        record_id: int,
        changes: Optional[Dict[str, Any]] = None,
        increments: Optional[Dict[str, int]] = None,
    ) -> bool:
        kind = EntityKind(kind)
        changes = dict(changes or {})
        increments = dict(increments or {})

        locked = READ_ONLY_FIELDS.intersection(changes) | READ_ONLY_FIELDS.intersection(increments)
        if locked:
            raise ValidationError("Fields cannot be changed", context={"fields": ",".join(sorted(locked))})

        async with self._guard():
            if kind == EntityKind.USER:
                doc, paths = self._users.get(record_id), USER_PATHS
            elif kind == EntityKind.POST:
                doc, paths = self._posts.get(record_id), POST_PATHS
            elif kind == EntityKind.LIKE:
                found = self._find_like(record_id)
                doc, paths = (found[1] if found else None), {"created_at": ("liked_at",)}
            else:
                found = self._find_comment(record_id)
                doc, paths = (found[1] if found else None), {}

            if doc is None:
                return False

            if "slug" in changes and any(
                other["slug"] == changes["slug"] and other["_id"] != record_id
                for other in self._posts.values()
            ):
                raise ConflictError("slug already taken", context={"slug": changes["slug"]})

            for field, value in changes.items():
                _set_path(doc, paths.get(field, (field,)), value)
            for field, delta in increments.items():
                path = paths.get(field, (field,))
                _set_path(doc, path, _get_path(doc, path) + delta)

            if (changes or increments) and "updated_at" in doc and "updated_at" not in changes:
                doc["updated_at"] = self._clock()
            return True

    async def query(
        self,
        kind: EntityKind,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        kind = EntityKind(kind)
        async with self._guard():
            records = [r for r in self._records(kind) if matches_filters(r, filters)]

        # Stable sorts applied from the least significant key up
        for field, direction in reversed(list(sort or ())):
            records.sort(key=lambda r: _sort_key(r.get(field)), reverse=(direction == "desc"))

        return records[:limit] if limit is not None else records

    async def count(self, kind: EntityKind, filters: Optional[Dict[str, Any]] = None) -> int:
        return len(await self.query(kind, filters))

    async def delete(self, kind: EntityKind, record_id: int, cascade: bool = False) -> bool:
        kind = EntityKind(kind)
        async with self._guard():
            if kind == EntityKind.USER:
                deleted = self._delete_user(record_id, cascade)
            elif kind == EntityKind.POST:
                deleted = self._delete_post(record_id, cascade)
            elif kind == EntityKind.LIKE:
                deleted = self._delete_like(record_id)
            else:
                deleted = self._delete_comment(record_id, cascade)

        if deleted:
            logger.info(f"Deleted {kind.value} {record_id} (cascade={cascade})")
        return deleted

    def _delete_user(self, user_id: int, cascade: bool) -> bool:
        if user_id not in self._users:
            return False

        referenced = (
            any(post["author"]["user_id"] == user_id for post in self._posts.values())
            or any(like["user_id"] == user_id for _, like in self._iter_likes())
            or any(c["user_id"] == user_id for _, c, _ in self._iter_comments())
        )
        if referenced and not cascade:
            raise ConflictError("user is still referenced", context={"id": user_id})

        for post_id in [pid for pid, post in self._posts.items() if post["author"]["user_id"] == user_id]:
            del self._posts[post_id]

        for post in self._posts.values():
            post["likes"] = [like for like in post["likes"] if like["user_id"] != user_id]
            # Dropping a top-level comment drops its embedded replies with it
            post["comments"] = [c for c in post["comments"] if c["user_id"] != user_id]
            for comment in post["comments"]:
                comment["replies"] = [r for r in comment["replies"] if r["user_id"] != user_id]

        del self._users[user_id]
        return True

    def _delete_post(self, post_id: int, cascade: bool) -> bool:
        post = self._posts.get(post_id)
        if post is None:
            return False
        if (post["likes"] or post["comments"]) and not cascade:
            raise ConflictError("post is still referenced", context={"id": post_id})
        del self._posts[post_id]
        return True

    def _delete_like(self, like_id: int) -> bool:
        found = self._find_like(like_id)
        if found is None:
            return False
        post, like = found
        post["likes"].remove(like)
        return True

    def _delete_comment(self, comment_id: int, cascade: bool) -> bool:
        found = self._find_comment(comment_id)
        if found is None:
            return False
        post, comment, parent = found
        if parent is not None:
            parent["replies"].remove(comment)
            return True
        if comment["replies"] and not cascade:
            raise ConflictError("comment is still referenced", context={"id": comment_id})
        post["comments"].remove(comment)
        return True
