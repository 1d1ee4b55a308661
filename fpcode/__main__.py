"""
Usage:
    python -m fpcode song.wav
    python -m fpcode --dir songs_wav/ codes.json
"""

import logging
import sys

from .batch import main as batch_main
from .errors import FingerprintError
from .host import fingerprint_file

USAGE = (
    "Usage:\n"
    "  python -m fpcode song.wav\n"
    "  python -m fpcode --dir songs_wav/ codes.json"
)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if not argv:
        print(USAGE)
        return 1

    if argv[0] == "--dir":
        if len(argv) != 3:
            print(USAGE)
            return 1
        return batch_main(argv[1], argv[2])

    try:
        code = fingerprint_file(argv[0])
    except FingerprintError as e:
        print(f"Cannot fingerprint {argv[0]}: {e}", file=sys.stderr)
        return 2
    print(code.text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
