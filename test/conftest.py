import pytest
from cryptography.fernet import Fernet

from api.context import AppContext
from integration.google_oauth import GoogleOAuth
from momentum.errors import ProviderConflict, ProviderError, Unauthorized
from momentum.models import ConnectedSettingsRef, Credential, TaskList
from momentum.settings import Settings
from storage.credential_store import CredentialStore
from sync.credential_resolver import CredentialResolver
from sync.event_mapper import EventMapper
from sync.executor import SyncExecutor
from sync.fanout import FanOutScheduler
from sync.trigger import SyncTrigger

CRON_SECRET = "cron-s3cret"


class FakeDatabase:
    """Just enough of storage.db.Database for the stores' queries."""

    def __init__(self):
        self.settings = {}
        self.data = {}

    async def fetchval(self, query, user_id, doc_name):
        table = self.settings if "FROM user_settings" in query else self.data
        return table.get((user_id, doc_name))

    async def execute(self, query, *args):
        if query.lstrip().startswith("INSERT INTO user_settings"):
            user_id, doc_name, record, merge = args
            current = self.settings.get((user_id, doc_name), {}) if merge else {}
            self.settings[(user_id, doc_name)] = {**current, **record}
        elif query.lstrip().startswith("UPDATE user_settings"):
            user_id, doc_name, key = args
            self.settings.get((user_id, doc_name), {}).pop(key, None)
        return "OK"

    async def fetch(self, query, *args):
        return [
            {"user_id": user_id, "doc_name": doc_name}
            for (user_id, doc_name), doc in sorted(self.settings.items())
            if (doc.get("googleCalendar") or {}).get("access_token")
        ]


class FakeCredentialStore:
    def __init__(self, credentials=None, connected=None):
        self.credentials = dict(credentials or {})
        self.connected = list(connected or [])
        self.saved = []
        self.deleted = []

    async def get_google_calendar(self, user_id):
        return self.credentials.get(user_id)

    async def save_google_calendar(self, user_id, credentials, email=None):
        self.saved.append((user_id, credentials, email))
        self.credentials[user_id] = Credential(access_token=credentials.token, email=email)

    async def delete_google_calendar(self, user_id):
        self.deleted.append(user_id)
        self.credentials.pop(user_id, None)

    async def find_connected(self):
        return [ConnectedSettingsRef(user_id=u, doc_name=d) for u, d in self.connected]


class FakeTaskStore:
    def __init__(self, lists=None):
        self.lists = dict(lists or {})
        self.calls = []

    async def get_task_list(self, user_id):
        self.calls.append(user_id)
        tasks = self.lists.get(user_id)
        if tasks is None or isinstance(tasks, TaskList):
            return tasks
        return TaskList(tasks=tasks)


class FakeCalendar:
    """Stands in for CalendarIntegration; remembers ids like Google would."""

    def __init__(self, existing=None, failing=None):
        self.existing = set(existing or [])
        self.failing = set(failing or [])
        self.inserted = []

    def insert_event(self, calendar_id, event):
        if event["id"] in self.failing:
            raise ProviderError("Google Calendar returned 500: backendError", status=500)
        if event["id"] in self.existing:
            raise ProviderConflict(event["id"])
        self.existing.add(event["id"])
        self.inserted.append((calendar_id, event))
        return event


class RecordingTrigger(SyncTrigger):
    def __init__(self, failing=None):
        super().__init__()
        self.fired = []
        self.failing = set(failing or [])

    def fire(self, uid):
        if uid in self.failing:
            raise RuntimeError(f"cannot reach worker for {uid}")
        self.fired.append(uid)


class FakeIdentity:
    def __init__(self, tokens=None):
        self.tokens = dict(tokens or {})

    async def verify(self, token):
        if not token:
            raise Unauthorized("No token provided.")
        if token not in self.tokens:
            raise Unauthorized("Invalid token.")
        return self.tokens[token]


def task_dict(task_id, due="2024-01-01", start="09:00", end="10:00", **extra):
    return {
        "id": task_id,
        "text": f"Task {task_id}",
        "dueDate": due,
        "startTime": start,
        "endTime": end,
        "completed": False,
        **extra,
    }


@pytest.fixture
def credential():
    return Credential(access_token="ya29.token", refresh_token="1//refresh", email="u1@example.com")


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def make_executor(calendar):
    def _make(credential_store, task_store, timezone="Asia/Kolkata"):
        return SyncExecutor(
            resolver=CredentialResolver(credential_store),
            task_store=task_store,
            calendar_factory=lambda credential: calendar,
            mapper=EventMapper(timezone),
            calendar_id="primary",
        )

    return _make


@pytest.fixture
def fernet():
    return Fernet(Fernet.generate_key())


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def credential_store(fake_db, fernet):
    return CredentialStore(fake_db, fernet)


@pytest.fixture
def make_context(make_executor, fernet):
    def _make(credential_store=None, task_store=None, tokens=None, trigger=None):
        credential_store = credential_store or FakeCredentialStore()
        task_store = task_store or FakeTaskStore()
        trigger = trigger or RecordingTrigger()
        settings = Settings(
            cron_secret=CRON_SECRET,
            google_client_id="client-id.apps.googleusercontent.com",
            google_client_secret="client-secret",
            frontend_url="http://localhost:3000",
        )
        return AppContext(
            settings=settings,
            credential_store=credential_store,
            task_store=task_store,
            identity=FakeIdentity(tokens),
            oauth=GoogleOAuth(
                settings.google_client_id,
                settings.google_client_secret,
                settings.google_redirect_uri,
                fernet,
            ),
            executor=make_executor(credential_store, task_store),
            trigger=trigger,
            scheduler=FanOutScheduler(credential_store, trigger),
        )

    return _make
