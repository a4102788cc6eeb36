"""Error kinds raised by the registry, the ledger and the store.

The CLI turns any ``TasklogError`` into a one-line message and exit code 1.
"""


class TasklogError(Exception):
    pass


class DuplicateTask(TasklogError):
    def __init__(self, name: str):
        super().__init__(f"task already exists: {name}")
        self.name = name


class TaskNotFound(TasklogError):
    def __init__(self, name_or_id):
        super().__init__(f"task does not exist: {name_or_id}")
        self.name_or_id = name_or_id


class InvalidTaskNumber(TasklogError):
    def __init__(self, number):
        super().__init__(f"invalid task number: {number}")
        self.number = number


class EntryNotFound(TasklogError):
    def __init__(self, seq):
        super().__init__(f"entry not found: {seq}")
        self.seq = seq


class NoOpenEntry(TasklogError):
    def __init__(self):
        super().__init__("no task is running")


class InvalidTimeRange(TasklogError):
    def __init__(self, start, end):
        super().__init__(f"end time {end} is before start time {start}")
        self.start = start
        self.end = end


class InvalidTimeFormat(TasklogError):
    def __init__(self, value: str):
        super().__init__(f"invalid time: {value!r} (use HHMM or HH:MM)")
        self.value = value


class InvalidDateFormat(TasklogError):
    def __init__(self, value: str):
        super().__init__(f"invalid date: {value!r} (use YYYYMMDD or YYYY-MM-DD)")
        self.value = value


class StoreNotFound(TasklogError):
    def __init__(self, path, reason: str = "run `tasklog init` first"):
        super().__init__(f"database not found: {path} ({reason})")
        self.path = path


class StoreAlreadyExists(TasklogError):
    def __init__(self, path):
        super().__init__(f"database already exists: {path} (use --force to recreate)")
        self.path = path


class InvalidTaskName(TasklogError):
    def __init__(self, name: str):
        super().__init__(f"invalid task name: {name!r}")
        self.name = name


class StoreUnavailable(TasklogError):
    def __init__(self, path, reason: str):
        super().__init__(f"cannot create database: {path} ({reason})")
        self.path = path


class ManagerMissing(TasklogError):
    def __init__(self):
        super().__init__("internal status row is missing (run `tasklog reset-manager`)")
