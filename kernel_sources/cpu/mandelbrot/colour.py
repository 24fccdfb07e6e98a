from numba import njit


@njit(cache=True, nogil=True)
def channel_mask(flags):
    """Spread bits 0..2 of `flags` onto the R, G and B byte lanes (0x01, 0x0100, 0x010000)."""
    return ((flags & 4) << 14) | ((flags & 2) << 7) | (flags & 1)


@njit(cache=True, nogil=True)
def encode_colour(avg_iter, max_iter, max_colours, flags):
    # max_colours is a power of two, so the mask keeps c in [0, max_colours)
    c = (avg_iter * max_colours // max_iter) & (max_colours - 1)
    return c * channel_mask(flags)

