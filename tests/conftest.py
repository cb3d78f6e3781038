import pytest


class FakeResponse:
    def __init__(self, data):
        self.data = data


def _or_clause_matches(row, clause):
    column, op, value = clause.split(".", 2)
    if column not in row:
        return True
    actual = row[column]
    if op == "is":
        return actual is None
    if actual is None:
        return False
    if op == "eq":
        return str(actual).lower() == value.lower()
    if op == "gte":
        return str(actual) >= value
    if op == "lte":
        return str(actual) <= value
    return True


class FakeQuery:
    """Chainable stand-in for the Supabase query builder.

    Applies eq / in_ / gte / lte / or_ filters to columns present on the
    fixture rows and records every call.
    """

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))
        return self

    def select(self, *args):
        return self._record("select", *args)

    def eq(self, column, value):
        return self._record("eq", column, value)

    def in_(self, column, values):
        return self._record("in_", column, values)

    def gte(self, column, value):
        return self._record("gte", column, value)

    def lte(self, column, value):
        return self._record("lte", column, value)

    def or_(self, filters):
        return self._record("or_", filters)

    def order(self, column, **kwargs):
        return self._record("order", column)

    def contains(self, column, values):
        return self._record("contains", column, values)

    def _keep(self, row):
        for name, args in self.calls:
            if name == "eq" and args[0] in row and row[args[0]] != args[1]:
                return False
            if name == "in_" and args[0] in row and row[args[0]] not in args[1]:
                return False
            if name == "gte" and row.get(args[0]) is not None and str(row[args[0]]) < args[1]:
                return False
            if name == "lte" and row.get(args[0]) is not None and str(row[args[0]]) > args[1]:
                return False
            if name == "or_" and not any(_or_clause_matches(row, c) for c in args[0].split(",")):
                return False
            if name == "contains" and not set(args[1]) <= set(row.get(args[0]) or []):
                return False
        return True

    def execute(self):
        self.client.executed.append(self)
        if self.table in self.client.failures:
            raise self.client.failures[self.table]
        return FakeResponse([row for row in self.client.tables.get(self.table, []) if self._keep(row)])


class FakeClient:
    def __init__(self, tables=None, failures=None):
        self.tables = tables or {}
        self.failures = failures or {}
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)

    def queries_for(self, table):
        return [q for q in self.executed if q.table == table]


@pytest.fixture
def club_tables():
    """One club in March 2024: two subgroups, a session, a single and a weekly event."""
    return {
        "subgroups": [
            {"id": "sg-kids", "name": "Kids", "club_id": "club-1"},
            {"id": "sg-adults", "name": "Adults", "club_id": "club-1"},
        ],
        "training_sessions": [
            {"id": "s1", "date": "2024-03-04", "start_time": "17:00", "end_time": "18:30",
             "subgroup_id": "sg-kids", "club_id": "club-1", "cancelled": False},
            {"id": "s2", "date": "2024-03-20", "start_time": "19:00", "end_time": "21:00",
             "subgroup_id": "sg-adults", "club_id": "club-1", "cancelled": None},
            {"id": "s3", "date": "2024-02-28", "start_time": "17:00", "end_time": "18:00",
             "subgroup_id": "sg-kids", "club_id": "club-1", "cancelled": False},
        ],
        "events": [
            {"id": "e-single", "title": "Club tournament", "start_date": "2024-03-16",
             "start_time": "10:00", "end_time": "16:00", "target_subgroup_ids": [],
             "event_type": "single", "club_id": "club-1", "cancelled": False},
            {"id": "e-weekly", "title": "Open training", "start_date": "2024-02-05",
             "start_time": "18:00", "end_time": "20:00", "target_subgroup_ids": ["sg-adults"],
             "event_type": "recurring", "repeat_type": "weekly", "repeat_end_date": None,
             "excluded_dates": ["2024-03-11"], "club_id": "club-1", "cancelled": False},
        ],
        "event_attendance": [
            {"event_id": "e-single", "occurrence_date": None,
             "present_user_ids": ["p-anna", "p-ben"], "coach_hours": {"c-lee": 6}},
            {"event_id": "e-weekly", "occurrence_date": "2024-03-04",
             "present_user_ids": ["p-ben"], "coach_hours": {"c-lee": 2}},
            {"event_id": "e-weekly", "occurrence_date": None,
             "present_user_ids": ["p-anna"], "coach_hours": {}},
        ],
        "attendance": [
            {"date": "2024-03-04", "session_id": "s1", "subgroup_id": "sg-kids", "club_id": "club-1",
             "present_player_ids": ["p-anna"], "coach_ids": ["c-lee"]},
            {"date": "2024-03-20", "session_id": "s2", "subgroup_id": "sg-adults", "club_id": "club-1",
             "present_player_ids": ["p-ben"], "coaches": [{"id": "c-kim", "hours": 1.5}]},
        ],
        "profiles": [
            {"id": "p-anna", "first_name": "Anna", "last_name": "Berg", "role": "player",
             "club_id": "club-1", "subgroup_ids": ["sg-kids"]},
            {"id": "p-ben", "first_name": "Ben", "last_name": "Adler", "role": "player",
             "club_id": "club-1", "subgroup_ids": ["sg-adults"]},
            {"id": "c-lee", "first_name": "Lee", "last_name": "Chan", "role": "coach",
             "club_id": "club-1"},
            {"id": "c-kim", "first_name": "Kim", "last_name": "Doe", "role": "head_coach",
             "club_id": "club-1"},
        ],
    }


@pytest.fixture
def fake_client(club_tables):
    return FakeClient(club_tables)


@pytest.fixture
def make_client():
    return FakeClient
