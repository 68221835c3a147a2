"""Shared in-memory fakes for MongoDB (Motor), Redis (asyncio) and RQ."""

import copy
import datetime as dt
import fnmatch
import uuid
from types import SimpleNamespace

import pytest
from bson import ObjectId

from skill_challenges.core.utils import utcnow
from skill_challenges.services.challenge_cache import ChallengeListCache
from skill_challenges.services.challenge_service import ChallengeService
from skill_challenges.services.completion_scheduler import CompletionScheduler


# --------------------------------------------------------------------------------------
# MongoDB
# --------------------------------------------------------------------------------------


def _matches_condition(value, cond):
    if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
        for op, arg in cond.items():
            if op == "$ne":
                if isinstance(value, list):
                    if arg in value:
                        return False
                elif value == arg:
                    return False
            elif op == "$gte":
                if value is None or not value >= arg:
                    return False
            elif op == "$lte":
                if value is None or not value <= arg:
                    return False
            elif op == "$size":
                if not isinstance(value, list) or len(value) != arg:
                    return False
            elif op == "$in":
                if value not in arg:
                    return False
            else:
                raise NotImplementedError(op)
        return True
    if isinstance(value, list) and not isinstance(cond, list):
        return cond in value
    return value == cond


def matches(doc, query):
    return all(_matches_condition(doc.get(key), cond) for key, cond in query.items())


def apply_update(doc, update):
    for op, fields in update.items():
        if op == "$set":
            doc.update(copy.deepcopy(fields))
        elif op == "$addToSet":
            for key, value in fields.items():
                values = doc.setdefault(key, [])
                if value not in values:
                    values.append(value)
        else:
            raise NotImplementedError(op)


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, key, direction=1):
        self.docs = sorted(self.docs, key=lambda d: d.get(key), reverse=direction == -1)
        return self

    def skip(self, n):
        self.docs = self.docs[n:]
        return self

    def limit(self, n):
        self.docs = self.docs[:n]
        return self

    async def to_list(self, length=None):
        return self.docs if length is None else self.docs[:length]


class FakeCollection:
    """Subset of AsyncIOMotorCollection used by the services."""

    def __init__(self):
        self.docs = []
        self.find_calls = 0
        self.pipelines = []
        self.aggregate_handler = lambda pipeline: []
        self.indexes = []

    async def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query, projection=None):
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None):
        self.find_calls += 1
        return FakeCursor([copy.deepcopy(d) for d in self.docs if matches(d, query or {})])

    async def count_documents(self, query):
        return sum(1 for d in self.docs if matches(d, query))

    async def update_one(self, query, update):
        for doc in self.docs:
            if matches(doc, query):
                before = copy.deepcopy(doc)
                apply_update(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=int(before != doc))
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one_and_update(self, query, update, return_document=False):
        for doc in self.docs:
            if matches(doc, query):
                before = copy.deepcopy(doc)
                apply_update(doc, update)
                return copy.deepcopy(doc) if return_document else before
        return None

    async def find_one_and_delete(self, query):
        for doc in self.docs:
            if matches(doc, query):
                self.docs.remove(doc)
                return doc
        return None

    def aggregate(self, pipeline):
        self.pipelines.append(pipeline)
        return FakeCursor(list(self.aggregate_handler(pipeline)))

    async def create_indexes(self, models):
        self.indexes.extend(models)
        return [m.document["name"] for m in models]


class FakeDatabase:
    def __init__(self):
        self.collections = {}
        self.ping_error = None

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    async def command(self, name):
        if self.ping_error:
            raise self.ping_error
        return {"ok": 1}


# --------------------------------------------------------------------------------------
# Redis (asyncio)
# --------------------------------------------------------------------------------------


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.error = None

    def _check(self):
        if self.error:
            raise self.error

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.store[key] = value
        self.ttls[key] = ex

    async def scan_iter(self, match="*"):
        self._check()
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def delete(self, *keys):
        self._check()
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def ping(self):
        self._check()
        return True


# --------------------------------------------------------------------------------------
# RQ
# --------------------------------------------------------------------------------------


class FakeJob:
    def __init__(self, func, args, meta=None, retry=None, description=None, delay=None):
        self.id = str(uuid.uuid4())
        self.func_name = func
        self.args = args
        self.meta = meta or {}
        self.retry = retry
        self.description = description
        self.scheduled_for = utcnow() + delay if delay is not None else None


class FakeRegistry:
    def __init__(self, queue):
        self.queue = queue
        self.job_ids = []

    def get_job_ids(self):
        return list(self.job_ids)

    def remove(self, job, pipeline=None, delete_job=False):
        self.job_ids.remove(job.id)
        if delete_job:
            self.queue.jobs.pop(job.id, None)


class FakeQueue:
    def __init__(self, name="test"):
        self.name = name
        self.jobs = {}
        self.enqueued = []
        self.scheduled_job_registry = FakeRegistry(self)
        self.error = None

    def enqueue_in(self, delay, func, *args, meta=None, retry=None, description=None):
        if self.error:
            raise self.error
        job = FakeJob(func, args, meta=meta, retry=retry, description=description, delay=delay)
        self.jobs[job.id] = job
        self.scheduled_job_registry.job_ids.append(job.id)
        return job

    def enqueue(self, func, *args, retry=None, description=None):
        job = FakeJob(func, args, retry=retry, description=description)
        self.jobs[job.id] = job
        self.enqueued.append(job)
        return job

    def fetch_job(self, job_id):
        if self.error:
            raise self.error
        return self.jobs.get(job_id)


# --------------------------------------------------------------------------------------
# Fixtures
# --------------------------------------------------------------------------------------


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def cache(fake_redis):
    return ChallengeListCache(fake_redis)


@pytest.fixture
def scheduler(fake_queue):
    return CompletionScheduler(fake_queue)


@pytest.fixture
def service(fake_db, cache, scheduler):
    return ChallengeService(fake_db, cache, scheduler)


@pytest.fixture
def make_payload():
    def _make(**overrides):
        payload = {
            "title": "Design a landing page",
            "deadline": utcnow() + dt.timedelta(days=7),
            "money_prize": "$500",
            "contact_email": "talent@umurava.africa",
            "project_brief": "A short brief",
            "project_description": ["Line one", "Line two"],
            "project_requirements": ["Figma"],
            "deliverables": ["Mockups"],
            "seniority_level": ["junior", "intermediate"],
            "category": "design",
            "skills_needed": ["UI", "UX"],
        }
        payload.update(overrides)
        return payload

    return _make
