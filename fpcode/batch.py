"""
batch.py — Batch Code Builder

Fingerprints every WAV file of a directory and saves the codes as JSON,
ready to be shipped to whatever service does the matching.

What it does:
- Loads WAV files from songs_dir/
- Converts audio to mono, normalizes and resamples to the codegen rate
- Generates one fingerprint code per file
- Saves [{"file", "duration", "landmarks", "code"}, ...] to out_path
"""

import json
import logging
import os

from .config import CodegenConfig, DEFAULT_CONFIG
from .errors import FingerprintError
from .host import fingerprint_file

logger = logging.getLogger(__name__)


def build_codes(songs_dir: str, config: CodegenConfig = DEFAULT_CONFIG, workers=None):
    """Fingerprint the .wav files of songs_dir in name order. Unusable files are skipped."""
    song_files = sorted(f for f in os.listdir(songs_dir) if f.lower().endswith(".wav"))
    records = []
    for fn in song_files:
        path = os.path.join(songs_dir, fn)
        try:
            code = fingerprint_file(path, config, workers=workers)
        except FingerprintError as e:
            logger.warning(f"Skipping {fn}: {e}")
            continue
        records.append({
            "file": fn,
            "duration": code.duration,
            "landmarks": len(code),
            "code": code.text,
        })
        logger.info(f"Coded {fn}: frames={code.duration} landmarks={len(code)}")
    return records


def main(songs_dir: str, out_path: str, workers=None) -> int:
    if not os.path.isdir(songs_dir):
        print(f"Not a directory: {songs_dir}")
        return 1

    records = build_codes(songs_dir, workers=workers)
    if not records:
        print(f"No usable .wav files found in {songs_dir}/")
        return 1

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w") as f:
        json.dump(records, f, indent=2)

    print(f"\nDone. files={len(records)} config={DEFAULT_CONFIG.config_hash}")
    print(f"Codes saved to {out_path}")
    return 0
