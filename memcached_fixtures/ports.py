import time


PORT_BASE = 30000
PORT_MASK = 0x7fff


def allocate_port(clock=time.monotonic_ns):
    """Derive a listening port from the low-order bits of a monotonic clock.

    Consecutive calls are unlikely to return the same port, but nothing checks
    the result against ports already bound or already present in a registry.
    """
    return PORT_BASE + (clock() & PORT_MASK)
