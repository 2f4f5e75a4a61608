"""
In-memory chat store.

One `ChatStore` holds users, sessions, rooms, messages and calls for the whole
process. Every mutating method runs "check, write, flush" inside one coarse
lock, so check-then-act sequences (DM creation, call start) cannot race. Reads
take the same lock and hand out copies, so callers never see a half-written
structure.
"""
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError as SchemaError

from constants import (
    MESSAGE_MAX_LENGTH,
    MESSAGE_PAGE_SIZE,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    ROOM_NAME_MAX_LENGTH,
    SEED_ROOM_ID,
    SEED_ROOMS,
    SYSTEM_USER_ID,
    USERNAME_MAX_LENGTH,
    USERNAME_PATTERN,
    USER_SEARCH_LIMIT,
)
from errors import AuthError, ConflictError, Forbidden, NotFound, StorageError, ValidationError
from logging_config import get_logger
from schemas.rooms import RoomView
from schemas.store import Call, Message, Room, Session, StoreDocument, User
from security import generate_token, get_password_hash, verify_password

logger = get_logger(__name__)

CALL_TYPES = ("voice", "video")
BOT_NAME = "Kovers Bot"
WELCOME_TEXT = "Welcome to Kovers. This is a fully working chat on its own backend."


def _new_id() -> str:
    return uuid.uuid4().hex


def format_timestamp(moment: datetime) -> str:
    # Fixed width, so string order is chronological order.
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def normalize_username(username) -> str:
    return str(username or "").strip().lower()


class ChatStore:
    def __init__(self, gateway, clock: Optional[Callable[[], datetime]] = None):
        self.gateway = gateway
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()
        self._doc = StoreDocument()
        self._last_stamp = ""

    # ---------- Persistence ----------

    def load(self):
        """Load the stored document, or seed and persist a fresh one on first run."""
        with self._lock:
            raw = self.gateway.load()
            if raw is None:
                logger.info("No stored data found, seeding a new store")
                self._doc = self._seed()
                self._flush()
                return
            try:
                self._doc = StoreDocument.model_validate(raw)
            except SchemaError as e:
                raise StorageError(f"Stored data does not match the store layout: {e}") from e
            stamps = [m.createdAt for m in self._doc.messages] + [c.startedAt for c in self._doc.calls]
            self._last_stamp = max(stamps, default="")
            logger.info(
                f"Store loaded: {len(self._doc.users)} users, {len(self._doc.rooms)} rooms, "
                f"{len(self._doc.messages)} messages, {len(self._doc.calls)} calls"
            )

    def snapshot(self) -> dict:
        with self._lock:
            return self._doc.model_dump(mode="json")

    def _seed(self) -> StoreDocument:
        created_at = self._now()
        rooms = [
            Room(id=room_id, type="group", name=name, members=[], createdBy=SYSTEM_USER_ID, createdAt=created_at)
            for room_id, name in SEED_ROOMS
        ]
        welcome = Message(
            id=_new_id(),
            roomId=SEED_ROOM_ID,
            authorId=SYSTEM_USER_ID,
            author=BOT_NAME,
            text=WELCOME_TEXT,
            createdAt=created_at,
        )
        return StoreDocument(rooms=rooms, messages=[welcome])

    def _flush(self):
        self.gateway.flush(self._doc.model_dump(mode="json"))

    def _now(self) -> str:
        stamp = format_timestamp(self._clock())
        # never step backwards, even if the wall clock does
        if stamp < self._last_stamp:
            stamp = self._last_stamp
        self._last_stamp = stamp
        return stamp

    # ---------- Users ----------

    def _user(self, user_id: str) -> Optional[User]:
        return next((u for u in self._doc.users if u.id == user_id), None)

    def _user_by_name(self, username: str) -> Optional[User]:
        return next((u for u in self._doc.users if u.username == username), None)

    def _add_user(self, username: str, password_hash: Optional[str]) -> User:
        user = User(id=_new_id(), username=username, passwordHash=password_hash, createdAt=self._now())
        self._doc.users.append(user)
        for room_id, _ in SEED_ROOMS:
            seed_room = self._room(room_id)
            if seed_room is not None and user.id not in seed_room.members:
                seed_room.members.append(user.id)
        logger.info(f"User {username} created with id {user.id}")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._user(user_id)
            return user.model_copy() if user else None

    def register(self, username, password) -> User:
        username = normalize_username(username)
        if not re.match(USERNAME_PATTERN, username):
            raise ValidationError("Username must be 3-24 characters: lowercase letters, digits or underscore")
        password = str(password or "")
        if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
            raise ValidationError(f"Password must be {PASSWORD_MIN_LENGTH}-{PASSWORD_MAX_LENGTH} characters")
        password_hash = get_password_hash(password)

        with self._lock:
            if self._user_by_name(username):
                raise ConflictError("Username is already taken")
            user = self._add_user(username, password_hash)
            self._flush()
            return user.model_copy()

    def authenticate(self, username, password) -> tuple[str, User]:
        username = normalize_username(username)
        with self._lock:
            user = self._user_by_name(username)
            password_hash = user.passwordHash if user else None
        if not user or not verify_password(str(password or ""), password_hash):
            raise AuthError("Invalid username or password")
        return self.create_session(user.id), user.model_copy()

    def guest_login(self, username) -> tuple[str, User]:
        """Join without a password. Reusing a guest name takes over that guest's account."""
        username = normalize_username(username)[:USERNAME_MAX_LENGTH]
        if not username:
            raise ValidationError("Username is required")
        if not re.match(USERNAME_PATTERN, username):
            raise ValidationError("Username must be 3-24 characters: lowercase letters, digits or underscore")

        with self._lock:
            user = self._user_by_name(username)
            if user is not None and user.passwordHash:
                raise ConflictError("Username is already taken")
            if user is None:
                user = self._add_user(username, None)
            token = self._create_session(user.id)
            self._flush()
            return token, user.model_copy()

    def search_users(self, query, exclude_id: str) -> list[User]:
        query = normalize_username(query)
        with self._lock:
            found = [
                u.model_copy()
                for u in self._doc.users
                if u.id != exclude_id and query in u.username
            ]
        return found[:USER_SEARCH_LIMIT]

    # ---------- Sessions ----------

    def _create_session(self, user_id: str) -> str:
        dropped = [s for s in self._doc.sessions if s.userId == user_id]
        self._doc.sessions = [s for s in self._doc.sessions if s.userId != user_id]
        token = generate_token()
        self._doc.sessions.append(Session(token=token, userId=user_id, createdAt=self._now()))
        logger.debug(f"Session created for user {user_id}, {len(dropped)} previous session(s) invalidated")
        return token

    def create_session(self, user_id: str) -> str:
        with self._lock:
            token = self._create_session(user_id)
            self._flush()
            return token

    def resolve(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        with self._lock:
            session = next((s for s in self._doc.sessions if s.token == token), None)
            return session.model_copy() if session else None

    def current_user(self, token: Optional[str]) -> User:
        session = self.resolve(token)
        user = self.get_user(session.userId) if session else None
        if user is None:
            raise AuthError("Authentication required")
        return user

    def destroy(self, token: Optional[str]):
        with self._lock:
            remaining = [s for s in self._doc.sessions if s.token != token]
            if len(remaining) == len(self._doc.sessions):
                return
            self._doc.sessions = remaining
            self._flush()

    # ---------- Rooms ----------

    def _room(self, room_id: Optional[str]) -> Optional[Room]:
        return next((r for r in self._doc.rooms if r.id == room_id), None)

    def _render_room(self, room: Room, viewer_id: str) -> RoomView:
        names = []
        for member_id in room.members:
            member = self._user(member_id)
            if member is not None:
                names.append(member.username)
        title = room.name or ""
        if room.type == "dm":
            other = next((self._user(m) for m in room.members if m != viewer_id), None)
            title = other.username if other else ""
        return RoomView(
            id=room.id,
            type=room.type,
            name=room.name,
            title=title,
            members=list(room.members),
            memberNames=names,
            createdBy=room.createdBy,
            createdAt=room.createdAt,
        )

    def list_rooms_for(self, user_id: str) -> list[RoomView]:
        with self._lock:
            return [self._render_room(r, user_id) for r in self._doc.rooms if user_id in r.members]

    def is_member(self, room_id: Optional[str], user_id: str) -> bool:
        with self._lock:
            room = self._room(room_id)
            return room is not None and user_id in room.members

    def create_group(self, creator_id: str, name, member_usernames=None) -> RoomView:
        name = str(name or "").strip()[:ROOM_NAME_MAX_LENGTH].strip()
        if not name:
            raise ValidationError("Room name is required")

        with self._lock:
            members = [creator_id]
            for username in member_usernames or []:
                member = self._user_by_name(normalize_username(username))
                if member is None:
                    logger.debug(f"Dropping unknown member {username!r} from new room {name!r}")
                    continue
                if member.id not in members:
                    members.append(member.id)
            room = Room(id=_new_id(), type="group", name=name, members=members, createdBy=creator_id, createdAt=self._now())
            self._doc.rooms.append(room)
            self._flush()
            logger.info(f"Group room {room.id} ({name!r}) created by {creator_id} with {len(members)} members")
            return self._render_room(room, creator_id)

    def create_or_get_dm(self, user_id: str, other_username) -> tuple[RoomView, bool]:
        """Return the DM room for the pair, creating it when missing. The flag says whether it was created."""
        with self._lock:
            other = self._user_by_name(normalize_username(other_username))
            if other is None:
                raise NotFound("User not found")
            if other.id == user_id:
                raise ValidationError("You cannot start a conversation with yourself")

            pair = {user_id, other.id}
            existing = next((r for r in self._doc.rooms if r.type == "dm" and set(r.members) == pair), None)
            if existing is not None:
                return self._render_room(existing, user_id), False

            room = Room(id=_new_id(), type="dm", members=[user_id, other.id], createdBy=user_id, createdAt=self._now())
            self._doc.rooms.append(room)
            self._flush()
            logger.info(f"DM room {room.id} created between {user_id} and {other.id}")
            return self._render_room(room, user_id), True

    # ---------- Messages ----------

    def append(self, room_id: Optional[str], author_id: str, text) -> Message:
        with self._lock:
            room = self._room(room_id)
            if room is None:
                raise NotFound("Room not found")
            if author_id not in room.members:
                raise ValidationError("You are not a member of this room")
            text = str(text or "").strip()[:MESSAGE_MAX_LENGTH]
            if not text:
                raise ValidationError("Message is empty")
            author = self._user(author_id)
            message = Message(
                id=_new_id(),
                roomId=room.id,
                authorId=author_id,
                author=author.username if author else author_id,
                text=text,
                createdAt=self._now(),
            )
            self._doc.messages.append(message)
            self._flush()
            logger.debug(f"Message {message.id} appended to room {room.id} at {message.createdAt}")
            return message

    def query(self, room_id: str, since: Optional[str] = None) -> list[Message]:
        """Messages of the room newer than `since`, oldest first, at most the latest page.

        Messages sharing a timestamp keep insertion order. A client whose cursor equals
        a timestamp shared with a message it has not seen yet will skip that message.
        """
        with self._lock:
            found = [
                m for m in self._doc.messages
                if m.roomId == room_id and (not since or m.createdAt > since)
            ]
        return found[-MESSAGE_PAGE_SIZE:]

    def read_messages(self, room_id: Optional[str], user_id: str, since: Optional[str] = None) -> list[Message]:
        if not self.is_member(room_id, user_id):
            raise NotFound("Room not found")
        return self.query(room_id, since)

    # ---------- Calls ----------

    def _active_call(self, room_id: str) -> Optional[Call]:
        return next((c for c in self._doc.calls if c.roomId == room_id and c.status == "active"), None)

    def _call_for_participant(self, call_id: Optional[str], user_id: str) -> tuple[Call, User]:
        call = next((c for c in self._doc.calls if c.id == call_id), None)
        if call is None or call.status != "active":
            raise NotFound("Call not found")
        room = self._room(call.roomId)
        user = self._user(user_id)
        if room is None or user is None or user_id not in room.members:
            raise Forbidden("You are not a member of this room")
        return call, user

    def start_call(self, room_id: Optional[str], user_id: str, call_type) -> tuple[Call, bool]:
        """Start a call in the room, or return the active one. The flag says whether it was created."""
        with self._lock:
            room = self._room(room_id)
            user = self._user(user_id)
            if room is None or user is None or user_id not in room.members:
                raise NotFound("Room not found")
            call_type = str(call_type or "voice").strip().lower()
            if call_type not in CALL_TYPES:
                raise ValidationError("Call type must be voice or video")

            active = self._active_call(room.id)
            if active is not None:
                return active.model_copy(deep=True), False

            call = Call(id=_new_id(), roomId=room.id, type=call_type, participants=[user.username], startedAt=self._now())
            self._doc.calls.append(call)
            self._flush()
            logger.info(f"{call_type.capitalize()} call {call.id} started in room {room.id} by {user.username}")
            return call.model_copy(deep=True), True

    def join_call(self, call_id: Optional[str], user_id: str) -> Call:
        with self._lock:
            call, user = self._call_for_participant(call_id, user_id)
            if user.username not in call.participants:
                call.participants.append(user.username)
                self._flush()
                logger.debug(f"{user.username} joined call {call.id}")
            return call.model_copy(deep=True)

    def leave_call(self, call_id: Optional[str], user_id: str) -> Call:
        with self._lock:
            call, user = self._call_for_participant(call_id, user_id)
            if user.username in call.participants:
                call.participants.remove(user.username)
                if not call.participants:
                    call.status = "ended"
                    call.endedAt = self._now()
                    logger.info(f"Call {call.id} ended, last participant {user.username} left")
                self._flush()
            return call.model_copy(deep=True)

    def end_call(self, call_id: Optional[str], user_id: str) -> Call:
        with self._lock:
            call, user = self._call_for_participant(call_id, user_id)
            call.status = "ended"
            call.endedAt = self._now()
            self._flush()
            logger.info(f"Call {call.id} ended by {user.username}")
            return call.model_copy(deep=True)

    def list_active(self, room_id: str) -> list[Call]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._doc.calls if c.roomId == room_id and c.status == "active"]

    def active_calls_for(self, room_id: Optional[str], user_id: str) -> list[Call]:
        if not self.is_member(room_id, user_id):
            raise NotFound("Room not found")
        return self.list_active(room_id)
