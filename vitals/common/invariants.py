from typing import Any, Iterable
import math

from vitals.common.errors import raise_one_line


def assert_finite(*values: Any, code: str = 'E_CFG_INVARIANT') -> None:
    for v in values:
        try:
            x = float(v)
        except (TypeError, ValueError):
            raise_one_line(code, f'non-finite value {v}')
        if not math.isfinite(x):
            raise_one_line(code, f'non-finite value {v}')


def assert_range(x: Any, lo: float, hi: float, code: str = 'E_CFG_RANGE') -> None:
    try:
        xv = float(x)
    except (TypeError, ValueError):
        raise_one_line(code, f'not a number: {x}')
    if not (lo <= xv <= hi):
        raise_one_line(code, f'out of range [{lo},{hi}]: {xv}')


def iter_numbers(obj: Any, path: str = '') -> Iterable[tuple]:
    """Yield (path, value) for every int/float leaf of a nested payload."""
    if isinstance(obj, bool):
        return
    if isinstance(obj, (int, float)):
        yield path, obj
    elif isinstance(obj, dict):
        for k in sorted(obj.keys()):
            yield from iter_numbers(obj[k], f'{path}.{k}' if path else str(k))
    elif isinstance(obj, (list, tuple)):
        for i, v in enumerate(obj):
            yield from iter_numbers(v, f'{path}[{i}]')


def assert_payload_finite(payload: Any, code: str = 'E_SNAPSHOT_NONFINITE') -> None:
    """Reject payloads carrying NaN/inf anywhere in their numeric leaves."""
    for path, v in iter_numbers(payload):
        if not math.isfinite(float(v)):
            raise_one_line(code, f'non-finite value at {path}: {v}')
