import re


ALLOWED_PREFIXES = (
    'E_CFG_', 'E_LEDGER_', 'E_SNAPSHOT_', 'E_SETTINGS_', 'E_RUNTIME_', 'E_LOCK_'
)


class VitalsError(ValueError):
    """One-line coded error raised by the vitals engine."""

    def __init__(self, code: str, msg: str) -> None:
        self.code = normalize_code(code)
        super().__init__(one_line(msg, self.code))


def normalize_code(code: str) -> str:
    c = str(code).strip()
    if not any(c.startswith(p) for p in ALLOWED_PREFIXES):
        c = 'E_CFG_' + c
    return c


def one_line(msg: str, code: str) -> str:
    c = normalize_code(code)
    # Collapse whitespace and strip newlines
    m = str(msg)
    m = m.replace('\r', ' ')
    m = m.replace('\n', ' ')
    m = re.sub(r'\s+', ' ', m).strip()
    return f"{c}: {m}"


def raise_one_line(code: str, msg: str) -> None:
    raise VitalsError(code, msg)
