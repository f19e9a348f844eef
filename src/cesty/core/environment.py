from collections.abc import Iterable

from cesty.models import ByteRange, Environment, Modification, ModificationKind


def _ordered(modifications: Iterable[Modification], size: int) -> list[Modification]:
    ordered = sorted(modifications, key=lambda m: (m.range.start, m.range.end), reverse=True)
    for later, earlier in zip(ordered, ordered[1:]):
        if earlier.range.overlaps(later.range):
            raise ValueError(f"modifications {earlier.range} and {later.range} overlap")
    for modification in ordered:
        if modification.range.end > size:
            raise ValueError(f"modification {modification.range} exceeds source size {size}")
    return ordered


def apply_modifications(source: bytes, modifications: Iterable[Modification]) -> bytes:
    """Apply the edits highest offset first so pending ranges stay valid."""
    buffer = bytearray(source)
    for modification in _ordered(modifications, len(source)):
        buffer[modification.range.start : modification.range.end] = modification.replacement
    return bytes(buffer)


def synthesize(
    source: bytes,
    modifications: Iterable[Modification],
    entry_point: ByteRange | None = None,
) -> Environment:
    """Build the full, mainless and templated views of one file.

    ``entry_point`` is the template plus body range of ``main``; when omitted
    it is taken from the ``REMOVE_ENTRY_POINT`` modification, if any.
    """
    edits = list(modifications)
    removals = [m for m in edits if m.kind is ModificationKind.REMOVE_ENTRY_POINT]
    if entry_point is not None and all(m.range != entry_point for m in removals):
        removal = Modification(kind=ModificationKind.REMOVE_ENTRY_POINT, range=entry_point)
        removals.append(removal)
        edits.append(removal)

    return Environment(
        full=source.decode("utf-8"),
        mainless=apply_modifications(source, removals).decode("utf-8"),
        templated=apply_modifications(source, edits).decode("utf-8"),
    )
