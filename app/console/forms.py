import copy
from typing import Any, Callable, Optional

from app.console.validation import ValidationFailed

Normalizer = Callable[[Any], Any]


def voucher_prefix(value: Any) -> str:
    return str(value or "").upper()[:6]


def stripped(value: Any) -> str:
    return str(value or "").strip()


class FormState:
    """Draft values for one dialog, independent of the cache.

    Opening, closing and a successful submit all return the form to its
    initial values; a failed submit keeps the draft so the dialog can stay open.
    """

    def __init__(self, initial: dict, normalizers: Optional[dict[str, Normalizer]] = None):
        self.initial = copy.deepcopy(initial)
        self.normalizers = dict(normalizers or {})
        self.values: dict = {}
        self.errors: dict[str, str] = {}
        self.is_open = False
        self.editing_id: Any = None
        self.reset()

    def reset(self) -> None:
        self.values = copy.deepcopy(self.initial)
        self.errors = {}
        self.editing_id = None

    def open(self, values: Optional[dict] = None, editing_id: Any = None) -> None:
        self.reset()
        if values:
            self.update(values)
        self.editing_id = editing_id
        self.is_open = True

    def close(self) -> None:
        self.is_open = False
        self.reset()

    def set(self, field: str, value: Any) -> None:
        normalizer = self.normalizers.get(field)
        self.values[field] = normalizer(value) if normalizer else value
        self.errors.pop(field, None)

    def update(self, values: dict) -> None:
        for field, value in values.items():
            self.set(field, value)

    def get(self, field: str, default: Any = None) -> Any:
        return self.values.get(field, default)

    def data(self) -> dict:
        return copy.deepcopy(self.values)

    def fail(self, exc: ValidationFailed) -> None:
        self.errors = dict(exc.errors)

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None
