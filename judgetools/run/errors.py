class ProgramError(Exception):
    """A program could not be prepared or started.

    This is a fault of the judging platform (missing toolchain, broken
    workspace), never of the submitted code.
    """
    pass
