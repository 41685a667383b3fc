"""
ERP Sessions — Minimal in-memory motor double.
Covers the query/update operators used by services/session_store.py and
records every write (collection, op, in-session) in order.
Transactions snapshot all collections and restore them on exception.
"""

import copy


def _get(doc, key):
    return doc.get(key)


def _match_value(value, cond):
    if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
        for op, arg in cond.items():
            if op == "$ne" and value == arg:
                return False
            if op == "$in" and value not in arg:
                return False
            if op == "$nin" and value in arg:
                return False
            if op in ("$lte", "$gte", "$lt", "$gt"):
                if value is None:
                    return False
                if op == "$lte" and not value <= arg:
                    return False
                if op == "$gte" and not value >= arg:
                    return False
                if op == "$lt" and not value < arg:
                    return False
                if op == "$gt" and not value > arg:
                    return False
        return True
    return value == cond


def matches(doc, query):
    return all(_match_value(_get(doc, key), cond) for key, cond in (query or {}).items())


def _project(doc, projection):
    if not projection:
        return dict(doc)
    included = [k for k, v in projection.items() if v and k != "_id"]
    if included:
        return {k: doc[k] for k in included if k in doc}
    return {k: v for k, v in doc.items() if k != "_id"}


class Result:
    def __init__(self, matched_count=0, modified_count=0, deleted_count=0, inserted_ids=None):
        self.matched_count = matched_count
        self.modified_count = modified_count
        self.deleted_count = deleted_count
        self.inserted_ids = inserted_ids or []


class FakeCursor:

    def __init__(self, docs):
        self._docs = docs

    def sort(self, key_or_list, direction=1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        for key, dirn in reversed(keys):
            self._docs.sort(key=lambda d: (d.get(key) is not None, d.get(key) or ""), reverse=dirn < 0)
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:

    def __init__(self, name, journal):
        self.name = name
        self.docs = []
        self._journal = journal

    def _record(self, op, session):
        self._journal.append((self.name, op, session is not None))

    def find(self, query=None, projection=None):
        return FakeCursor([_project(d, projection) for d in self.docs if matches(d, query)])

    async def find_one(self, query=None, projection=None):
        for d in self.docs:
            if matches(d, query):
                return _project(d, projection)
        return None

    async def insert_many(self, docs, session=None):
        self._record("insert_many", session)
        self.docs.extend(copy.deepcopy(list(docs)))
        return Result(inserted_ids=[d.get("id") for d in docs])

    async def insert_one(self, doc, session=None):
        self._record("insert_one", session)
        self.docs.append(copy.deepcopy(doc))
        return Result(inserted_ids=[doc.get("id")])

    async def update_one(self, query, update, session=None, upsert=False):
        self._record("update_one", session)
        for d in self.docs:
            if matches(d, query):
                for key, value in update.get("$set", {}).items():
                    d[key] = value
                for key, value in update.get("$inc", {}).items():
                    d[key] = (d.get(key) or 0) + value
                return Result(matched_count=1, modified_count=1)
        return Result()

    async def delete_many(self, query, session=None):
        self._record("delete_many", session)
        kept = [d for d in self.docs if not matches(d, query)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return Result(deleted_count=deleted)


class FakeDatabase:

    def __init__(self):
        self.journal = []
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self._collections:
            self._collections[name] = FakeCollection(name, self.journal)
        return self._collections[name]

    def __getitem__(self, name):
        return getattr(self, name)

    def writes(self, collection=None):
        return [(c, op) for c, op, _ in self.journal if collection is None or c == collection]


class FakeTransaction:

    def __init__(self, database, options):
        self._db = database
        self.options = options
        self._snapshot = None

    async def __aenter__(self):
        self._snapshot = {n: copy.deepcopy(c.docs) for n, c in self._db._collections.items()}
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            for name, collection in self._db._collections.items():
                collection.docs = self._snapshot.get(name, [])
        return False


class FakeClientSession:

    def __init__(self, client):
        self._client = client

    def start_transaction(self, read_concern=None, write_concern=None):
        transaction = FakeTransaction(
            self._client.database,
            {"read_concern": read_concern, "write_concern": write_concern},
        )
        self._client.transactions.append(transaction)
        return transaction

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeMongoClient:

    def __init__(self, database):
        self.database = database
        self.transactions = []

    async def start_session(self):
        return FakeClientSession(self)
