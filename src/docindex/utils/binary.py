"""Binary content detection used before decoding text formats."""

# Printable ASCII plus tab, LF, CR
_TEXT_BYTES = frozenset(range(32, 127)) | {9, 10, 13}


def is_binary_content(content: bytes, sample_size: int = 8192) -> bool:
    """Detect binary content from null bytes and control characters.

    Bytes >= 0x80 count as text so that UTF-8 documents in non-Latin
    scripts are not rejected.

    Args:
        content: Raw file content
        sample_size: Number of bytes to sample from the start

    Returns:
        True if content appears to be binary
    """
    if not content:
        return False

    sample = content[:sample_size]

    if b"\x00" in sample:
        return True

    control = sum(1 for byte in sample if byte < 128 and byte not in _TEXT_BYTES)

    # More than 10% control characters: not text
    return (control / len(sample)) > 0.10
