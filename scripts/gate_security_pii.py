#!/usr/bin/env python3
"""Security & PII gate for runtime source files.

Fails if:
- print( found in runtime code (src/**)
- A logger call mentions payloads, bodies, phones or message text without
  going through safe_log_context
- A phone is passed to a log context without mask_phone

Usage:
    python scripts/gate_security_pii.py
"""

import re
import sys
from pathlib import Path

SENSITIVE_KEYWORDS = (
    "payload",
    "body_bytes",
    "request.body",
    "request.json",
    "sender_phone",
    "message_text",
    "transcription",
    "text=",
)

PRINT_PATTERN = re.compile(r"\bprint\s*\(")

LOGGER_CALL_PATTERN = re.compile(
    r"logger\.(debug|info|warning|error|critical|exception)\s*\("
)

# phone=<anything but mask_phone(...)>
RAW_PHONE_PATTERN = re.compile(r"\bphone\s*=\s*(?!mask_phone\()")

REDACTION_PATTERNS = ("safe_log_context",)


def _call_block(lines: list[str], start: int) -> tuple[str, int]:
    """Source of the call opening on lines[start], and the index after it."""
    depth = 0
    block: list[str] = []
    i = start
    while i < len(lines):
        code = lines[i].split("#")[0]
        block.append(code)
        depth += code.count("(") - code.count(")")
        i += 1
        if depth <= 0:
            break
    return "\n".join(block), i


def check_file(filepath: Path) -> list[str]:
    """Check a single file for violations. Returns list of error messages."""
    try:
        content = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []

    errors = []
    lines = content.splitlines()
    i = 0
    while i < len(lines):
        line = lines[i]
        lineno = i + 1
        code_part = line.split("#")[0]

        if PRINT_PATTERN.search(code_part):
            errors.append(f"{filepath}:{lineno}: print() not allowed in runtime code")

        if not LOGGER_CALL_PATTERN.search(code_part):
            i += 1
            continue

        block, i = _call_block(lines, i)
        has_redaction = any(rp in block for rp in REDACTION_PATTERNS)
        block_lower = block.lower()
        for keyword in SENSITIVE_KEYWORDS:
            if keyword in block_lower and not has_redaction:
                errors.append(
                    f"{filepath}:{lineno}: logger call with '{keyword}' "
                    "must use safe_log_context"
                )
        if RAW_PHONE_PATTERN.search(block):
            errors.append(f"{filepath}:{lineno}: phone must be logged via mask_phone()")

    return errors


def main() -> int:
    """Run gate check on src directory."""
    src_dir = Path("src")
    if not src_dir.exists():
        src_dir = Path(__file__).parent.parent / "src"

    if not src_dir.exists():
        sys.stderr.write("Error: src directory not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("PII gate FAILED - Security/PII violations found:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("PII gate PASSED - No security/PII violations found\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
