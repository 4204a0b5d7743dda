from __future__ import annotations

from typing import Callable, MutableMapping, TypeVar

T = TypeVar("T")

DEFAULT_LOADING_MESSAGE = "Loading..."

Listener = Callable[[object], None]


class _Observable:
    """Minimal observer: listeners receive the container after every change."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


class LoadingState(_Observable):
    def __init__(self) -> None:
        super().__init__()
        self.is_loading = False
        self.message = DEFAULT_LOADING_MESSAGE

    def show(self, message: str = DEFAULT_LOADING_MESSAGE) -> None:
        self.message = message
        self.is_loading = True
        self._notify()

    def hide(self) -> None:
        self.is_loading = False
        self.message = DEFAULT_LOADING_MESSAGE
        self._notify()


class ThemeState(_Observable):
    def __init__(self, is_dark: bool = False) -> None:
        super().__init__()
        self.is_dark = is_dark

    def toggle(self) -> None:
        self.is_dark = not self.is_dark
        self._notify()

    def set_dark(self, is_dark: bool) -> None:
        if self.is_dark != is_dark:
            self.is_dark = is_dark
            self._notify()


def session_state_container(store: MutableMapping[str, object], key: str, factory: Callable[[], T]) -> T:
    """Return the container kept under `key` (e.g. in st.session_state), creating it once."""
    if key not in store:
        store[key] = factory()
    return store[key]  # type: ignore[return-value]
