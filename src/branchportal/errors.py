"""Exceptions raised by the trader service layer."""


class TraderServiceError(Exception):
    """Base error for store and pipeline failures."""


class TraderNotFoundError(TraderServiceError):
    def __init__(self, branch_id: str, trader_id: str):
        super().__init__(f"Trader with ID {trader_id} in branch {branch_id} not found.")
        self.branch_id = branch_id
        self.trader_id = trader_id


class TaskNotFoundError(TraderServiceError):
    def __init__(self, trader_id: str, task_id: str):
        super().__init__(f"Task {task_id} for trader {trader_id} not found.")
        self.trader_id = trader_id
        self.task_id = task_id


class DuplicatePhoneError(TraderServiceError):
    def __init__(self, phone: str):
        super().__init__("A trader with this phone number already exists.")
        self.phone = phone


class ImportValidationError(TraderServiceError):
    """An upload was rejected before anything was written."""


class UploadLimitExceededError(ImportValidationError):
    def __init__(self, row_count: int, limit: int):
        super().__init__(
            f"Upload limit exceeded: the file has {row_count} data rows but the "
            f"limit is {limit} records per upload. Please split the file."
        )
        self.row_count = row_count
        self.limit = limit


class CsvParseError(ImportValidationError):
    def __init__(self, line_number: int, message: str):
        super().__init__(f"Parsing error on line {line_number}: {message}.")
        self.line_number = line_number


class AgentError(Exception):
    """The hosted LLM could not produce an answer."""
