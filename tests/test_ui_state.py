from clinic_ui.state import DEFAULT_LOADING_MESSAGE, LoadingState, ThemeState, session_state_container


class TestLoadingState:
    def test_defaults(self):
        state = LoadingState()

        assert state.is_loading is False
        assert state.message == DEFAULT_LOADING_MESSAGE == "Loading..."

    def test_show_and_hide(self):
        state = LoadingState()

        state.show("Saving...")
        assert (state.is_loading, state.message) == (True, "Saving...")

        state.hide()
        assert (state.is_loading, state.message) == (False, "Loading...")

    def test_show_without_message_uses_default(self):
        state = LoadingState()
        state.show("Saving...")
        state.hide()

        state.show()

        assert state.message == "Loading..."

    def test_subscribers_see_every_change(self):
        state = LoadingState()
        seen = []
        unsubscribe = state.subscribe(lambda s: seen.append((s.is_loading, s.message)))

        state.show("Sending booking...")
        state.hide()
        unsubscribe()
        state.show()

        assert seen == [(True, "Sending booking..."), (False, "Loading...")]


class TestThemeState:
    def test_toggle(self):
        theme = ThemeState()
        assert theme.is_dark is False

        theme.toggle()
        assert theme.is_dark is True

        theme.toggle()
        assert theme.is_dark is False

    def test_set_dark_notifies_only_on_change(self):
        theme = ThemeState(is_dark=True)
        calls = []
        theme.subscribe(lambda s: calls.append(s.is_dark))

        theme.set_dark(True)
        theme.set_dark(False)

        assert calls == [False]

    def test_clear_listeners(self):
        theme = ThemeState()
        calls = []
        theme.subscribe(calls.append)

        theme.clear_listeners()
        theme.toggle()

        assert calls == []


def test_session_state_container_is_created_once():
    store = {}

    first = session_state_container(store, "loading", LoadingState)
    first.show("Busy")
    second = session_state_container(store, "loading", LoadingState)

    assert second is first
    assert second.is_loading is True


def test_containers_are_independent_per_session():
    a, b = {}, {}

    session_state_container(a, "theme", ThemeState).toggle()

    assert session_state_container(b, "theme", ThemeState).is_dark is False
