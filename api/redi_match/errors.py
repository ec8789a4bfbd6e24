class MatchingError(Exception):
    """Base class for failures the HTTP layer reports to the caller."""

    status_code = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class AlreadyMatchedError(MatchingError):
    status_code = 409


class MatchNotFoundError(MatchingError):
    status_code = 404

    def __init__(self, detail: str = "Match not found"):
        super().__init__(detail)


class MatchIndexOutOfRangeError(MatchingError):
    status_code = 400


class AlreadyNudgedError(MatchingError):
    status_code = 400

    def __init__(self, detail: str = "You have already nudged this match"):
        super().__init__(detail)


class InvalidMatchError(MatchingError):
    status_code = 400
