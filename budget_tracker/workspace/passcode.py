"""Global UI passcode guarding destructive actions.

Independent of agency reader passcodes and of backend accounts; stored
in the local cache under ``app_passcode``.
"""

from budget_tracker.core.exceptions import ValidationError
from budget_tracker.workspace.local_cache import CacheKeys, LocalCache

DEFAULT_APP_PASSCODE = "1234"
MIN_PASSCODE_LENGTH = 4


class PasscodeGuard:
    def __init__(self, cache: LocalCache):
        self.cache = cache

    @property
    def current(self) -> str:
        return self.cache.get(CacheKeys.APP_PASSCODE) or DEFAULT_APP_PASSCODE

    def verify(self, code: str) -> bool:
        return code == self.current

    def require(self, code: str) -> None:
        if not self.verify(code):
            raise ValidationError("รหัสผ่านไม่ถูกต้อง")

    def change(self, current: str, new: str, confirm: str) -> None:
        """Replace the passcode after checking the current one.

        Raises:
            ValidationError: wrong current passcode, new one shorter than
                four characters, or confirmation mismatch (checked in that order).
        """
        if not self.verify(current):
            raise ValidationError("รหัสผ่านปัจจุบันไม่ถูกต้อง", details={"current": "invalid"})
        if len(new or "") < MIN_PASSCODE_LENGTH:
            raise ValidationError(
                "รหัสผ่านต้องมีความยาวอย่างน้อย 4 ตัวอักษร",
                details={"new": f"min_length_{MIN_PASSCODE_LENGTH}"},
            )
        if new != confirm:
            raise ValidationError("รหัสผ่านใหม่ไม่ตรงกัน", details={"confirm": "mismatch"})
        self.cache.set(CacheKeys.APP_PASSCODE, new)
