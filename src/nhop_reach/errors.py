"""Exception hierarchy for reachability computations."""


class ReachabilityError(Exception):
    """Base class for errors raised by nhop_reach."""


class MalformedRecordError(ReachabilityError, ValueError):
    """A record or message value does not decompose into the expected fields.

    Raised by the codecs and recovered by their callers: the record is
    skipped and counted, the round carries on.
    """


class ProtocolInvariantViolation(ReachabilityError):
    """A hop message travelled further than the configured hop count."""


class RoundFailure(ReachabilityError):
    """A round did not complete; the whole computation is aborted."""

    def __init__(self, round_index: int, reason: str):
        super().__init__(f"round {round_index} failed: {reason}")
        self.round_index = round_index
