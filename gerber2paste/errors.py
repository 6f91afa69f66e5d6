class Gerber2PasteError(Exception):
    """Base class for errors raised by gerber2paste."""


class OperationCancelled(Gerber2PasteError):
    """Raised when a caller-supplied cancel check asks a long operation to stop."""


def check_cancel(should_cancel) -> None:
    if should_cancel is not None and should_cancel():
        raise OperationCancelled("Operation cancelled by caller")
