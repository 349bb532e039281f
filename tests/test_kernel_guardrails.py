"""Guardrails to keep the kernel free of side effects and source-specific code."""

import re
from pathlib import Path

KERNEL_DIR = Path(__file__).resolve().parents[1] / "src" / "fieldsync" / "kernel"

FORBIDDEN_PATTERNS = {
    "open(": re.compile(r"(?<![A-Za-z0-9_])open\s*\("),
    "print(": re.compile(r"(?<![A-Za-z0-9_])print\s*\("),
    "datetime.now": re.compile(r"\bdatetime\.now\b"),
    "time.time": re.compile(r"\btime\.time\b"),
    "asyncio.sleep": re.compile(r"\basyncio\.sleep\b"),
    "os.environ": re.compile(r"\bos\.environ\b"),
    "logging.basicConfig": re.compile(r"\blogging\.basicConfig\b"),
}

# Adapters may only be referenced for type checking (indented under TYPE_CHECKING)
RUNTIME_ADAPTER_IMPORT = re.compile(r"^from fieldsync\.adapters\b|^import fieldsync\.adapters\b", re.MULTILINE)


def _kernel_sources():
    return [(path.name, path.read_text(encoding="utf-8")) for path in sorted(KERNEL_DIR.glob("*.py"))]


def test_kernel_has_no_forbidden_tokens():
    offenders = []

    for name, contents in _kernel_sources():
        for token, pattern in FORBIDDEN_PATTERNS.items():
            if pattern.search(contents):
                offenders.append(f"{name}: {token}")

    assert not offenders, "Forbidden kernel tokens found: " + ", ".join(offenders)


def test_kernel_does_not_import_adapters_at_runtime():
    offenders = [name for name, contents in _kernel_sources() if RUNTIME_ADAPTER_IMPORT.search(contents)]
    assert not offenders, "Kernel modules importing adapters: " + ", ".join(offenders)


def test_kernel_names_no_source():
    """Source names belong to the adapters; the kernel only sees kinds as strings."""
    offenders = [
        name for name, contents in _kernel_sources()
        if re.search(r"\b(airtable|notion|google_sheets)\b", contents, re.IGNORECASE)
    ]
    assert not offenders, "Kernel modules naming a source: " + ", ".join(offenders)
