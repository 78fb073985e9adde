from io import BytesIO
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from PIL import Image


class FakeQuery:
    """Records one PostgREST builder chain and answers `execute()` from canned responses."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.op = None
        self.payload = None
        self.columns = None
        self.filters = []
        self.order_by = None
        self.single = False

    def select(self, columns="*", **kwargs):
        self.op = self.op or "select"
        self.columns = columns
        return self

    def insert(self, row, **kwargs):
        self.op, self.payload = "insert", row
        return self

    def update(self, values, **kwargs):
        self.op, self.payload = "update", values
        return self

    def delete(self, **kwargs):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False, **kwargs):
        self.order_by = (column, desc)
        return self

    def limit(self, count, **kwargs):
        return self

    def maybe_single(self):
        self.single = True
        return self

    def execute(self):
        self.client.executed.append(self)
        queued = self.client.responses.get((self.table, self.op), [None])
        # The last queued result keeps answering once the others are used up
        result = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(result, Exception):
            raise result
        if result is None and self.single:
            return None
        if result is None:
            return SimpleNamespace(data=[])
        return SimpleNamespace(data=result)


class FakeSupabase:
    """Stand-in for the Supabase client: fake tables, MagicMock storage and auth."""

    def __init__(self):
        self.responses = {}
        self.executed = []
        self.storage = MagicMock(name="storage")
        self.auth = MagicMock(name="auth")
        self.bucket = self.storage.from_.return_value
        # Storage behaves like a healthy bucket unless a test overrides it
        self.bucket.upload.side_effect = lambda path, file, file_options=None: SimpleNamespace(path=path)
        self.bucket.remove.side_effect = lambda paths: [{"name": p} for p in paths]
        self.bucket.get_public_url.side_effect = lambda path: f"https://project.supabase.co/storage/v1/object/public/portfolio-images/{path}"

    def respond(self, table, op, *results):
        """Queues results (row data or exceptions) for `table`/`op`; the last one keeps answering."""
        self.responses[(table, op)] = list(results)

    def table(self, name):
        return FakeQuery(self, name)

    def calls(self, table=None, op=None):
        return [q for q in self.executed
                if (table is None or q.table == table) and (op is None or q.op == op)]


@pytest.fixture
def fake_db():
    return FakeSupabase()


def make_image_bytes(width, height, fmt="JPEG", mode="RGB"):
    buffer = BytesIO()
    Image.new(mode, (width, height), color=(200, 100, 50) if mode == "RGB" else None).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    return make_image_bytes
