class SqlineError(Exception):
    pass


class OpenError(SqlineError):
    """
    The database could not be opened. No session is possible.
    """


class StatementError(SqlineError):
    """
    A statement could not be run. Reported, and the session continues.
    """


class PrepareError(StatementError):
    pass


class QueryError(StatementError):
    pass


class FinalizeError(SqlineError):
    pass


class CloseError(SqlineError):
    pass


class WriteError(SqlineError):
    pass


class Interrupted(SqlineError):
    """
    Reason carried by an interrupt fired from the keyboard.
    """
