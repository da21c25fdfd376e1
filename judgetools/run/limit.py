"""
Resource limits for judged runs.

Limits are applied with setrlimit in the child process between fork and
exec (see limiter()).  A limit above the judge's own hard limit cannot
be set; it is capped at the hard limit instead of failing the run.
"""

import math
import resource

# resource -> (description, unit divisor, unit) for capability warnings
_CHECKED = {
    resource.RLIMIT_CPU: ('CPU', 1, 's'),
    resource.RLIMIT_AS: ('memory', 1024 * 1024, 'MB'),
    resource.RLIMIT_FSIZE: ('file size', 1, 'bytes'),
}


def check_limit_capabilities(logger):
    """Warn if the judge itself runs under hard limits that would cap
    the limits given to submissions.

    Params:
        logger: object to issue warnings to (by calling 'warning' method)
    """
    for res, (what, divisor, unit) in _CHECKED.items():
        _, hard = resource.getrlimit(res)
        if hard != resource.RLIM_INFINITY:
            logger.warning('Hard %s rlimit of %.0f %s, runs given a higher limit than this will get this limit.',
                           what, hard / divisor, unit)


def try_limit(res, soft, hard):
    """Set an rlimit, capping soft and hard at the current hard limit.

    Params:
        res: resource to limit (e.g. resource.RLIMIT_CPU)
        soft: soft limit
        hard: hard limit
    """
    _, cap = resource.getrlimit(res)
    resource.setrlimit(res, (_capped(soft, cap), _capped(hard, cap)))


def limiter(timelim=None, memlim=None, output_limit=None):
    """Build a function that applies rlimits to the calling process.

    Params:
        timelim (float): wall clock deadline in seconds; the CPU limit
            is set one second above it so that the wall clock deadline
            is what normally fires
        memlim (int): address space limit in MB
        output_limit (int): largest file, in bytes, the program may write
            without exceeding its output limit
    """
    def apply():
        if timelim is not None:
            cpu = math.ceil(timelim) + 1
            try_limit(resource.RLIMIT_CPU, cpu, cpu + 1)
        if memlim is not None:
            try_limit(resource.RLIMIT_AS, memlim * 1024 * 1024, resource.RLIM_INFINITY)
        if output_limit is not None:
            # One byte of headroom, so that reaching the file size limit
            # means output_limit was exceeded.
            try_limit(resource.RLIMIT_FSIZE, output_limit + 1, output_limit + 1)
        try_limit(resource.RLIMIT_STACK, resource.RLIM_INFINITY, resource.RLIM_INFINITY)
    return apply


def _capped(limit, cap):
    """The smaller of two rlimit values, RLIM_INFINITY being the largest."""
    if cap == resource.RLIM_INFINITY:
        return limit
    if limit == resource.RLIM_INFINITY:
        return cap
    return min(limit, cap)
